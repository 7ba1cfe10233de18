"""Shared domain package for the Inspect360 application.

This package contains the code the Flask backend and its services build on:

- Database models (models.py) - SQLAlchemy tables for users, templates, inspections and assignments
- Enums (enums.py) - Field types, lifecycle states, priorities and roles
- Validation utilities (validation.py, schemas.py) - Pydantic schemas, field sanitization and domain errors
- Inspection engine (inspection_engine.py) - Materialization, responses, submission checks and progress
- Permissions (permissions.py) - Role to capability policy
- Utility functions (utils.py) - Identifiers, date/time strings and response lookups

Nothing here depends on Flask, so the engine can be exercised without an app.
"""
