# src/download_gateway/db/__init__.py
"""Database configuration and utilities."""
