"""
Database Models

This package defines the SQLAlchemy models used by the database credential store.

Key Models:
- base.py: Base SQLAlchemy model with common type definitions
- session.py: Persisted sessions, one row per store key

The models use SQLAlchemy's async interface so that storing a refreshed session never blocks
the event loop.
"""
