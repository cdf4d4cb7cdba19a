"""
WSGI / Flask CLI entry point.

Usage:
    flask --app wsgi seed-demo   # Department A, demo departments, paths, users
    flask --app wsgi db upgrade
    gunicorn wsgi:app
"""

from reqflow import create_app

app = create_app()
