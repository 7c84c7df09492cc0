"""
identity_service package

This package contains the core backend logic for the identity service.
It includes:

- FastAPI application and credential endpoints (`main.py`, `routes/profiles.py`)
- SQLAlchemy models, database integration and queries (`models.py`, `db.py`, `store.py`)
- Password hashing and bearer token codec (`auth.py`)
- Credential lifecycle and profile managers (`credentials.py`, `profiles.py`)
- Pydantic schemas (`schemas.py`)

Used as the entry point for the identity microservice in the platform.
"""
