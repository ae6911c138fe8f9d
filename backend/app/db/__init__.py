"""
Database module for the Travel Back Office

Contains seed data and database utilities.
"""
from app.db.seed_data import seed_all

__all__ = ["seed_all"]
