"""SQLAlchemy storage layer: schema, engine factory and repositories."""
