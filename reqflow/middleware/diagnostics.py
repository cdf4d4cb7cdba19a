"""
Startup diagnostics — runs once when the Flask app starts.

Checks the database and the Department A precondition and logs a summary banner.
"""

import logging
import sys

from flask import Flask
from sqlalchemy import inspect as sa_inspect

from reqflow.models import db

logger = logging.getLogger(__name__)


def run_startup_diagnostics(app: Flask):
    """Run diagnostic checks during app startup (inside app context)."""
    if app.config.get("TESTING"):
        return  # skip during tests for speed

    issues: list[str] = []

    with app.app_context():
        py = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"

        # ── Database connectivity ────────────────────────────────────
        db_status = "ok"
        db_uri = str(app.config.get("SQLALCHEMY_DATABASE_URI", ""))
        db_type = "PostgreSQL" if "postgresql" in db_uri else "SQLite" if "sqlite" in db_uri else "unknown"
        try:
            db.session.execute(db.text("SELECT 1"))
        except Exception as exc:
            db_status = "FAILED"
            issues.append(f"Database unreachable: {exc}")

        # ── Table count ──────────────────────────────────────────────
        try:
            table_count = len(sa_inspect(db.engine).get_table_names())
            if table_count == 0:
                issues.append("No tables found — run 'flask db upgrade'")
        except Exception:
            table_count = "?"

        # ── Department A ─────────────────────────────────────────────
        dept_a_status = "n/a"
        if db_status == "ok":
            from reqflow.services.helpers.lookups import find_department_a
            try:
                dept_a = find_department_a()
                if dept_a is None:
                    dept_a_status = "NOT CONFIGURED"
                    issues.append(
                        "No Department A configured — submissions will fail until one is flagged "
                        "(or run 'flask seed-demo')"
                    )
                else:
                    dept_a_status = f"{dept_a.code} (#{dept_a.id})"
            except Exception as exc:
                dept_a_status = "check failed"
                issues.append(f"Department A lookup failed: {exc}")
            finally:
                db.session.remove()

        identity = "JWT + X-User-Id" if app.config.get("TRUST_USER_HEADER") else "JWT only"

        banner = f"""
╔══════════════════════════════════════════════════════════════╗
║  Request Workflow Service — Startup Diagnostics              ║
╠══════════════════════════════════════════════════════════════╣
║  Python       : {py:<45s}║
║  Debug        : {str(app.debug):<45s}║
║  Database     : {f"{db_type} ({db_status})":<45s}║
║  Tables       : {str(table_count):<45s}║
║  Department A : {dept_a_status:<45s}║
║  Identity     : {identity:<45s}║
╚══════════════════════════════════════════════════════════════╝"""
        logger.info(banner)

        if issues:
            logger.warning("Startup issues detected:")
            for issue in issues:
                logger.warning("  ⚠ %s", issue)
        else:
            logger.info("✅ All startup checks passed")
