"""Role model.

A role is a named bundle of permission names. Two built-in roles live
outside memberships: "Non member" (logged-in users without a membership)
and "Anonymous" (visitors).
"""

import uuid

from app import access_control
from app.extensions import db
from app.models.mixins import ValidationMixin


class Role(ValidationMixin, db.Model):
    __tablename__ = "roles"

    # -- Built-in roles --
    BUILTIN_NONE = 0
    BUILTIN_NON_MEMBER = 1
    BUILTIN_ANONYMOUS = 2

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(30), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=1)
    assignable = db.Column(db.Boolean, nullable=False, default=True)
    builtin = db.Column(db.Integer, nullable=False, default=BUILTIN_NONE)
    permissions = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    member_roles = db.relationship(
        "MemberRole", back_populates="role", cascade="all, delete-orphan"
    )

    @classmethod
    def non_member(cls):
        """The built-in role of logged-in users without a membership."""
        return cls._find_or_create_builtin(cls.BUILTIN_NON_MEMBER, "Non member")

    @classmethod
    def anonymous(cls):
        """The built-in role of visitors."""
        return cls._find_or_create_builtin(cls.BUILTIN_ANONYMOUS, "Anonymous")

    @classmethod
    def _find_or_create_builtin(cls, builtin, name):
        role = cls.query.filter_by(builtin=builtin).first()
        if role is None:
            role = cls(name=name, builtin=builtin, position=0, permissions=[])
            db.session.add(role)
            db.session.flush()
        return role

    @classmethod
    def givable(cls):
        """Roles that can be given in a membership."""
        return cls.query.filter_by(builtin=cls.BUILTIN_NONE).order_by(cls.position)

    @property
    def member(self):
        """True for roles given through a membership."""
        return self.builtin == self.BUILTIN_NONE

    @property
    def is_builtin(self):
        return self.builtin != self.BUILTIN_NONE

    def allowed_to(self, action):
        """Does this role allow ``action``?

        ``action`` is a permission name or a controller-style dict
        ``{"controller": ..., "action": ...}``.
        """
        action = access_control.normalize_action(action)
        if isinstance(action, dict):
            return access_control.action_path(action) in self.allowed_actions()
        return action in self.allowed_permissions()

    def allowed_permissions(self):
        """Stored permissions plus every public permission."""
        names = set(self.permissions or [])
        names.update(p.name for p in access_control.public_permissions())
        return names

    def allowed_actions(self):
        return access_control.allowed_actions(self.allowed_permissions())

    def has_permission(self, name):
        return name in (self.permissions or [])

    def add_permission(self, *names):
        current = list(self.permissions or [])
        for name in names:
            if access_control.permission(name) is not None and name not in current:
                current.append(name)
        # reassign so the JSON column is flagged dirty
        self.permissions = current

    def remove_permission(self, *names):
        self.permissions = [p for p in (self.permissions or []) if p not in names]

    def setable_permissions(self):
        """Permissions that make sense for this role.

        Non-member drops members-only permissions; anonymous additionally
        drops those that require a login.
        """
        perms = [p for p in access_control.permissions() if not p.public]
        if self.builtin == self.BUILTIN_NON_MEMBER:
            perms = [p for p in perms if not p.require_member]
        elif self.builtin == self.BUILTIN_ANONYMOUS:
            perms = [p for p in perms if not p.require_loggedin]
        return perms

    def _validate(self):
        if not (self.name or "").strip():
            self.add_error("name", "blank")
        elif len(self.name) > 30:
            self.add_error("name", "too_long")
        else:
            query = Role.query.filter(Role.name == self.name)
            if self.id is not None:
                query = query.filter(Role.id != self.id)
            if query.first() is not None:
                self.add_error("name", "taken")

    def __repr__(self):
        return f"<Role {self.name}>"
