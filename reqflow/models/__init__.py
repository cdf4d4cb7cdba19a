"""
Request Workflow Engine
Shared SQLAlchemy extension instance.

Every model module imports ``db`` from here:

    from reqflow.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Register every mapper with the registry before any relationship is resolved.
from reqflow.models import organization, workflow, request, evaluation  # noqa: E402,F401
