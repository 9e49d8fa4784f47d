from __future__ import annotations

from ..extensions import db
from interbranch.time_utils import to_utc_z


BRANCH_TYPE_MAIN = "main"
BRANCH_TYPE_SUB = "sub"
BRANCH_TYPES = (BRANCH_TYPE_MAIN, BRANCH_TYPE_SUB)

ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_STAFF = "staff"
ROLE_CASHIER = "cashier"
ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_STAFF, ROLE_CASHIER)


class Branch(db.Model):
    """
    A physical branch holding its own stock ledger.

    Exactly one branch is expected to be `main` (the clearinghouse whose
    members see every transfer request); the schema does not enforce it.
    """
    __tablename__ = "branches"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_branches_name"),
        db.CheckConstraint("type IN ('main', 'sub')", name="ck_branches_type"),
        db.Index("ix_branches_type", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=True, index=True)
    type = db.Column(db.String(8), nullable=False, default=BRANCH_TYPE_SUB)
    address = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def is_main(self) -> bool:
        return self.type == BRANCH_TYPE_MAIN

    def __repr__(self) -> str:
        return f"<Branch id={self.id} name={self.name!r} type={self.type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "type": self.type,
            "address": self.address,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class User(db.Model):
    """
    User directory entry.

    Authentication lives outside this service; rows here exist so requests,
    decisions, and notifications can be attributed to a user id.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_users_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class UserBranchAssignment(db.Model):
    """
    A user's role at a branch.

    is_main_admin overrides branch and role restrictions entirely. The
    transfer workflow consumes one active assignment per user (the oldest).
    """
    __tablename__ = "user_branches"
    __table_args__ = (
        db.UniqueConstraint("user_id", "branch_id", name="uq_user_branches_user_branch"),
        db.CheckConstraint(
            "role IN ('admin', 'manager', 'staff', 'cashier')",
            name="ck_user_branches_role",
        ),
        db.Index("ix_user_branches_branch_role", "branch_id", "role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    role = db.Column(db.String(16), nullable=False)
    is_main_admin = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", backref=db.backref("branch_assignments", lazy=True))
    branch = db.relationship("Branch", backref=db.backref("assignments", lazy=True))

    def __repr__(self) -> str:
        return (
            f"<UserBranchAssignment user_id={self.user_id} branch_id={self.branch_id} "
            f"role={self.role} main_admin={self.is_main_admin}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "branch_id": self.branch_id,
            "role": self.role,
            "is_main_admin": self.is_main_admin,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
