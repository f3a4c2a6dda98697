"""Rate limiting, connectivity and error classification."""
