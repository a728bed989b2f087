"""Database models, session factory and repository."""
