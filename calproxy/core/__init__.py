"""Core infrastructure for calproxy: configuration, logging, HTTP client, errors."""
