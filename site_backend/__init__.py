"""
Backend package for the company website.

Provides a FastAPI application around the image asset store: uploaded files
live in a flat upload directory, their key -> URL mapping in a database.
"""
