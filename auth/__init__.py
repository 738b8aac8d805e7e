"""auth/ -- Authentication and authorization package for the guardian backend.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/, whitelist/, activity/, or extconfig/.
api/ imports from auth/, not the other way around.
"""
