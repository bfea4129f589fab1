"""Utility helpers shared by clients and the API layer."""
