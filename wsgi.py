"""
WSGI / Flask-Migrate entry point.

Usage:
    gunicorn wsgi:app
    flask db migrate -m "description"
    flask db upgrade
"""

from boardroom import create_app

app = create_app()
