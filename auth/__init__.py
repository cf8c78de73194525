"""auth/ -- Authentication and authorization package for the forum.

Credential store, password hasher, TOTP verifier, session manager and the
authorization guard.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or forum/.
api/ and forum/ import from auth/, not the other way around.
"""
