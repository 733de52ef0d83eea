"""
Infrastructure layer - external service integrations.

- storage: Object storage (S3 and S3-compatible stores)

These wrappers translate between SDK formats and our domain models.
"""
