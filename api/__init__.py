"""
FastAPI REST backend for the BookStack service.

This package provides:
- Name/password signin with access and refresh tokens
- Guest accounts
- Refresh token verification, refresh and logout
- A per-user book catalog with favorites
"""
