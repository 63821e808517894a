"""tenants/ -- Tenant (project) registry: identity, credentials, policy, lifecycle.

Layer rule: imports from core/ and auth/ only. Never from accounts/ or api/.
"""
