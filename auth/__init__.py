"""auth/ -- Secret vault and token issuer for TenantGate.

Layer rule: auth/ imports only from core/ plus third-party libraries.
tenants/, accounts/ and api/ import from auth/, not the other way around.
"""
