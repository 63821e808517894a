"""accounts/ -- Tenant-scoped end-user accounts and their refresh-token sets.

Layer rule: imports from core/, auth/ and tenants/ only. Never from api/.
"""
