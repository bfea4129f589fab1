"""HTTP API for the download gateway."""
