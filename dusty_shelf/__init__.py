"""
FastAPI RESTful API for the Dusty Shelf book service.

This package provides:
- Book CRUD endpoints backed by a relational database
- JWT bearer authentication
- Bounded, thread-offloaded database access
- Auto-generated OpenAPI documentation
"""

__version__ = "1.0.0"
