"""
Feature modules live under this package.

Keep module boundaries clean: each module owns its routes/models/service,
while reusing platform primitives (auth guard, RBAC, audit, storage, DB session).
"""
