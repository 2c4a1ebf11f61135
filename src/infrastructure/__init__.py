"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- storage: Object storage (Backblaze B2 native API)

These wrappers translate between external formats and our domain models.
"""
