"""HTTP surface: routers, schemas, error handlers and middleware."""
