"""
Organisation reference data — users, departments, department membership.

These rows are owned by the identity and administration collaborators.
The workflow core only reads them: to resolve the acting user's
department roles and to locate Department A, the fixed entry/exit point
of every request.
"""

from datetime import datetime, timezone

from reqflow.models import db

# ── Constants ────────────────────────────────────────────────────────────────

USER_ROLES = ("user", "admin")
MEMBER_ROLES = ("manager", "employee")


def _utcnow():
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════
# 1. USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), unique=True, nullable=False)
    role = db.Column(db.String(20), nullable=False, default="user", comment="user | admin")
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    memberships = db.relationship(
        "DepartmentMember", back_populates="user", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<User #{self.id} {self.email}>"


# ═══════════════════════════════════════════════════════════════
# 2. DEPARTMENTS
# ═══════════════════════════════════════════════════════════════
class Department(db.Model):
    """
    A unit that owns requests while they sit at one of its path steps.

    At most one row may carry ``is_department_a`` — enforced by a partial
    unique index so that two concurrent admin edits cannot both succeed.
    """

    __tablename__ = "departments"
    __table_args__ = (
        db.Index(
            "uq_departments_department_a",
            "is_department_a",
            unique=True,
            sqlite_where=db.text("is_department_a = 1"),
            postgresql_where=db.text("is_department_a"),
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    code = db.Column(db.String(50), unique=True, nullable=False)
    description = db.Column(db.Text)
    is_department_a = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    members = db.relationship(
        "DepartmentMember", back_populates="department", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "description": self.description,
            "is_department_a": self.is_department_a,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<Department #{self.id} {self.code}>"


# ═══════════════════════════════════════════════════════════════
# 3. DEPARTMENT MEMBERS (Junction table with role)
# ═══════════════════════════════════════════════════════════════
class DepartmentMember(db.Model):
    __tablename__ = "department_members"
    __table_args__ = (
        db.UniqueConstraint("department_id", "user_id", name="uq_department_member"),
    )

    id = db.Column(db.Integer, primary_key=True)
    department_id = db.Column(
        db.Integer, db.ForeignKey("departments.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    role = db.Column(db.String(20), nullable=False, default="employee", comment="manager | employee")

    department = db.relationship("Department", back_populates="members")
    user = db.relationship("User", back_populates="memberships")

    def to_dict(self):
        return {
            "department_id": self.department_id,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "email": self.user.email if self.user else None,
            "role": self.role,
        }
