"""
Feature modules live under this package.

Each module owns its routes/models/service code and reuses the platform
primitives (auth guards, audit, storage, mailer, DB session).
"""
