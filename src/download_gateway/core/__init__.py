"""Core primitives: settings, errors, hashing and proof-of-work."""
