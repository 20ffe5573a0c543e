"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper (same as shop/store.py).
UserStore is the repository; _row_to_user / _row_to_session are the mappers.
Route and dependency code never touches SQL directly.

Refresh-token allowlist:
  refresh_sessions holds one row per issued refresh token. A refresh token is
  valid only while its (user_id, token_id) row exists and has not expired, so
  deleting the row revokes the token instantly even though the JWT itself is
  still correctly signed. Expired rows are ignored on read and removed by
  purge_expired_sessions() (run periodically from the API lifespan).

  store_refresh_session() enforces the per-user device limit: when a user
  already holds max_devices live sessions, the oldest ones are evicted (FIFO)
  before the new row is written.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or shop/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine

from auth.models import RefreshSession, User
from core.models import Page

logger = logging.getLogger("foodorder.auth")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'foodorder_auth.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(50), nullable=False),
    Column("email", String(255), nullable=False, unique=True),  # normalized form
    Column("hashed_password", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default="customer"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("is_active", Integer, nullable=False, server_default="1"),
)

_refresh_sessions = Table(
    "refresh_sessions",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),  # insertion order for FIFO eviction
    Column("user_id", String(32), nullable=False, index=True),
    Column("token_id", String(32), nullable=False, unique=True),
    Column("created_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False),
    Column("device_info", Text),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _now_iso() -> str:
    return _now().isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and RefreshSession entities.

    Usage:
        store = UserStore()
        user_id = store.create_user(User(name="Asha", email="asha@mail.com", hashed_password=hash_password("s3cret!!")))
        user = store.get_by_email("asha@mail.com")
        store.store_refresh_session(user_id, token_id, ttl_seconds=604800)
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> str:
        """Insert a new user and return its generated ID.

        Raises sqlalchemy.exc.IntegrityError if the email is already taken.
        POST /auth/signup turns that into a 409.
        """
        user_id = uuid.uuid4().hex
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    name=user.name,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    role=user.role,
                    created_at=now,
                    updated_at=now,
                    is_active=1 if user.is_active else 0,
                )
            )
            conn.commit()
        return user_id

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by normalized email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_many(self, user_ids: set[str]) -> dict[str, User]:
        """Batch lookup used to expand payment references. Missing ids are absent."""
        if not user_ids:
            return {}
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().where(_users.c.id.in_(user_ids))).fetchall()
        return {r.id: _row_to_user(r) for r in rows}

    def list_users(self, page: int = 1, limit: int = 20) -> Page[User]:
        """Return one page of users, newest first. Admin-only operation."""
        offset = (page - 1) * limit
        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(_users)).scalar() or 0
            rows = conn.execute(
                _users.select().order_by(_users.c.created_at.desc()).limit(limit).offset(offset)
            ).fetchall()
        return Page(total=total, page=page, limit=limit, data=[_row_to_user(r) for r in rows])

    def update_user(self, user_id: str, **fields) -> bool:
        """Update mutable fields (name, role, is_active, hashed_password).

        Returns True if a row was updated, False if user_id was not found.
        """
        if "is_active" in fields:
            fields["is_active"] = 1 if fields["is_active"] else 0
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Refresh-token allowlist
    # ------------------------------------------------------------------

    def store_refresh_session(
        self,
        user_id: str,
        token_id: str,
        ttl_seconds: int,
        device_info: str | None = None,
        max_devices: int = 5,
    ) -> int:
        """Allowlist a refresh token, evicting the oldest sessions past max_devices.

        Returns the number of sessions evicted.
        """
        now = _now()
        evicted = 0
        with self.engine.connect() as conn:
            live = conn.execute(
                select(_refresh_sessions.c.id, _refresh_sessions.c.token_id)
                .where(
                    (_refresh_sessions.c.user_id == user_id)
                    & (_refresh_sessions.c.expires_at > now.isoformat())
                )
                .order_by(_refresh_sessions.c.created_at, _refresh_sessions.c.id)
            ).fetchall()
            overflow = len(live) - max_devices + 1
            if overflow > 0:
                stale_ids = [r.id for r in live[:overflow]]
                conn.execute(_refresh_sessions.delete().where(_refresh_sessions.c.id.in_(stale_ids)))
                evicted = len(stale_ids)
                for r in live[:overflow]:
                    logger.info("Evicted oldest session for user %s: %s", user_id, r.token_id)
            conn.execute(
                _refresh_sessions.insert().values(
                    user_id=user_id,
                    token_id=token_id,
                    created_at=now.isoformat(),
                    expires_at=(now + timedelta(seconds=ttl_seconds)).isoformat(),
                    device_info=device_info,
                )
            )
            conn.commit()
        return evicted

    def get_refresh_session(self, user_id: str, token_id: str) -> RefreshSession | None:
        """Return the live session for (user_id, token_id), or None if revoked/expired."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _refresh_sessions.select().where(
                    (_refresh_sessions.c.user_id == user_id)
                    & (_refresh_sessions.c.token_id == token_id)
                    & (_refresh_sessions.c.expires_at > _now_iso())
                )
            ).fetchone()
        return _row_to_session(row) if row is not None else None

    def count_refresh_sessions(self, user_id: str) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count())
                .select_from(_refresh_sessions)
                .where((_refresh_sessions.c.user_id == user_id) & (_refresh_sessions.c.expires_at > _now_iso()))
            ).scalar()
        return result or 0

    def revoke_refresh_session(self, user_id: str, token_id: str) -> bool:
        """Delete one session. Returns True if a row was removed."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _refresh_sessions.delete().where(
                    (_refresh_sessions.c.user_id == user_id) & (_refresh_sessions.c.token_id == token_id)
                )
            )
            conn.commit()
        return result.rowcount > 0

    def revoke_all_refresh_sessions(self, user_id: str) -> int:
        """Delete every session for a user. Returns the number removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_refresh_sessions.delete().where(_refresh_sessions.c.user_id == user_id))
            conn.commit()
        return result.rowcount

    def purge_expired_sessions(self) -> int:
        """Delete all expired sessions. Returns number of rows removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_refresh_sessions.delete().where(_refresh_sessions.c.expires_at <= _now_iso()))
            conn.commit()
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        hashed_password=row.hashed_password,
        role=row.role,
        created_at=row.created_at,
        updated_at=row.updated_at,
        is_active=bool(row.is_active),
    )


def _row_to_session(row) -> RefreshSession:
    return RefreshSession(
        user_id=row.user_id,
        token_id=row.token_id,
        created_at=row.created_at,
        expires_at=row.expires_at,
        device_info=row.device_info,
    )
