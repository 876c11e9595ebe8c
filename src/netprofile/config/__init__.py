"""Configuration layer — pydantic settings, TOML discovery, structlog setup."""
