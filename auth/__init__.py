"""auth/ -- Authentication, session lifecycle and refresh-cookie policy.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or shop/.
api/ imports from auth/, not the other way around.
"""
