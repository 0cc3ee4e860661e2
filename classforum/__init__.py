"""
Backend package for the class forum.

This package provides a FastAPI application over a hosted backend: an
authentication provider, a Postgres database and S3-compatible object
storage, each wrapped in a small client with an in-memory double.
"""
