"""auth/ -- Token lifecycle, login rate limiting and the request gate for AuthGate.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or core/.
api/ imports from auth/, not the other way around.
"""
