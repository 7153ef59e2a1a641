"""
Boardroom Idea Review Service
SQLAlchemy database instance.

Usage:
    from boardroom.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
