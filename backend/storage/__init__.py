"""Document store adapters for the platform records."""
