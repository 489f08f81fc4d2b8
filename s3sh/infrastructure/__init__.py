"""
Infrastructure layer - external service integrations.

- storage: Object storage (S3 and S3-compatible services)

These wrappers translate between the service's wire formats and our
domain models.
"""
