"""Bearer token verification and role checks for admin routes."""
