"""
Core business logic for media storage.

This module is framework-agnostic - it doesn't import FastAPI, httpx,
or any infrastructure concerns. Naming rules and the default-image
bootstrap can be tested without a storage account.
"""
