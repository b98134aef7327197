"""HTTP API for the Sift backend."""
