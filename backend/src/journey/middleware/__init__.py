"""HTTP middleware for request logging and metrics."""
