"""auth/ -- Credential lifecycle core: store, password hashing, tokens, service.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or core/. Configuration arrives as an AuthConfig
at construction time; api/ imports from auth/, not the other way around.
"""
