"""Declarative metadata for all placefeed tables.

Design Decisions:
    - Engine and sessions live in infrastructure/database.py; this package only owns metadata
"""
