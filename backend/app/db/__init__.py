"""
Database module for Campus Gate Pass

Contains seed data for local demos.
"""
from app.db.seed_data import seed_all, clear_all

__all__ = ["seed_all", "clear_all"]
