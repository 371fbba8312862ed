"""Authentication, rate limiting, request and resource services."""
