"""Service layer shared by the HTTP API."""
