"""
Backend package for Accountify.

This package provides a FastAPI application with storage, database and
change-feed abstractions for the accountant-facing SPA and the client portal.
"""
