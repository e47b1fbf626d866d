"""PostgreSQL connection pool and registry store."""
