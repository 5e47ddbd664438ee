"""
Store Module

Keypair persistence layer.

This module provides:
- PostgreSQL (psycopg) and SQLite backends selected by connection URL
- Schema bootstrap for the ``sol_keypairs`` table
- Insert-or-ignore writes keyed by public key (first write wins)
- Lookup and count helpers for operators and tests
"""

__version__ = "0.1.0"
