"""Service layer: business logic over the ORM models."""
