"""Identity and access: credentials, roles and the shared authorization predicate."""
