"""auth/ -- Operator login, session gate, rate limiting and delegated Google tokens.

Layer rule: auth/ imports from core/ and third-party libraries only.
It does NOT import from api/ or sheets/.
api/ and sheets/ import from auth/, not the other way around.
"""
