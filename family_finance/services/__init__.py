"""External service integrations (hosted database and auth)."""
