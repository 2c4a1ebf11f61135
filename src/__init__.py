"""
Bnusa Media API - image storage for the Bnusa publishing platform.

This package contains the complete application:
- core: Framework-agnostic naming rules and default-image bootstrap
- infrastructure: Backblaze B2 storage client
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
