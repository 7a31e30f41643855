"""Loyalty points service: SQLite storage, accrual tracking and a Flask HTTP API."""

__version__ = "0.1.0"