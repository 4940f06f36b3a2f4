"""Project models.

- Project: the top-level tenant container; may have subprojects.
- EnabledModule: project modules (issue_tracking, time_tracking, wiki, ...)
  switched on for a project. Permissions of a disabled module never apply.
"""

import uuid

from sqlalchemy import and_, false, or_

from app import access_control
from app.extensions import db
from app.models.mixins import ValidationMixin


class Project(ValidationMixin, db.Model):
    __tablename__ = "projects"

    # -- Statuses --
    STATUS_ACTIVE = 1
    STATUS_ARCHIVED = 9

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(255), nullable=False)
    identifier = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_public = db.Column(db.Boolean, nullable=False, default=True)
    status = db.Column(db.Integer, nullable=False, default=STATUS_ACTIVE)
    parent_id = db.Column(
        db.String(36), db.ForeignKey("projects.id"), nullable=True
    )
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    parent = db.relationship(
        "Project", remote_side=[id], back_populates="children"
    )
    children = db.relationship(
        "Project", back_populates="parent", order_by="Project.name"
    )
    enabled_modules = db.relationship(
        "EnabledModule",
        back_populates="project",
        cascade="all, delete-orphan",
    )
    members = db.relationship(
        "Member", back_populates="project", cascade="all, delete-orphan"
    )
    issues = db.relationship("Issue", back_populates="project", lazy="dynamic")
    issue_categories = db.relationship(
        "IssueCategory", back_populates="project", cascade="all, delete-orphan"
    )
    versions = db.relationship(
        "Version", back_populates="project", cascade="all, delete-orphan"
    )
    time_entries = db.relationship(
        "TimeEntry", back_populates="project", lazy="dynamic"
    )
    wiki = db.relationship(
        "Wiki", back_populates="project", uselist=False,
        cascade="all, delete-orphan",
    )

    # --- Status ---

    @property
    def active(self):
        return self.status == self.STATUS_ACTIVE

    @property
    def archived(self):
        return self.status == self.STATUS_ARCHIVED

    def archive(self):
        """Archive this project and its subprojects."""
        for project in self.hierarchy():
            project.status = self.STATUS_ARCHIVED

    def unarchive(self):
        """Unarchive; not possible while the parent is archived."""
        if self.parent is not None and not self.parent.active:
            return False
        self.status = self.STATUS_ACTIVE
        return True

    # --- Modules ---

    @property
    def enabled_module_names(self):
        return [m.name for m in self.enabled_modules]

    @enabled_module_names.setter
    def enabled_module_names(self, names):
        names = [n for n in names if n in access_control.available_project_modules()]
        self.enabled_modules = [EnabledModule(name=n) for n in dict.fromkeys(names)]

    def module_enabled(self, name):
        return name in self.enabled_module_names

    def allowed_permissions(self):
        """Names of the permissions available with the enabled modules."""
        return {
            p.name
            for p in access_control.modules_permissions(self.enabled_module_names)
        }

    def allowed_actions(self):
        return access_control.allowed_actions(self.allowed_permissions())

    def allows_to(self, action):
        """Is ``action`` possible on this project, given its enabled modules?"""
        action = access_control.normalize_action(action)
        if isinstance(action, dict):
            return access_control.action_path(action) in self.allowed_actions()
        return action in self.allowed_permissions()

    # --- Hierarchy ---

    def descendants(self):
        result = []
        for child in self.children:
            result.append(child)
            result.extend(child.descendants())
        return result

    def hierarchy(self):
        return [self] + self.descendants()

    # --- Members ---

    def principals(self):
        return [m.principal for m in self.members]

    def users(self):
        """Active users who are members, directly or through a group."""
        from app.models.group import Group
        from app.models.user import User

        result = []
        for principal in self.principals():
            if isinstance(principal, User):
                candidates = [principal]
            elif isinstance(principal, Group):
                candidates = principal.users
            else:
                candidates = []
            for user in candidates:
                if user.active and user not in result:
                    result.append(user)
        return sorted(result, key=lambda u: u.sort_key())

    # --- Visibility ---

    @classmethod
    def allowed_to_condition(cls, user, permission):
        """SQL condition selecting projects where ``user`` has ``permission``.

        Mirrors the default role rules: builtin role on public projects the
        user is not a member of, membership roles elsewhere.
        """
        from app.models.member import Member
        from app.models.role import Role

        base = cls.status == cls.STATUS_ACTIVE
        perm = access_control.permission(permission)
        if perm is not None and perm.project_module:
            enabled = db.session.query(EnabledModule.project_id).filter(
                EnabledModule.name == perm.project_module
            )
            base = and_(base, cls.id.in_(enabled))

        if getattr(user, "is_admin", False):
            return base

        principal_ids = [user.id] + [g.id for g in getattr(user, "groups", [])]
        memberships = Member.query.filter(
            Member.principal_id.in_(principal_ids)
        ).all()
        member_project_ids = {m.project_id for m in memberships}
        allowed_project_ids = {
            m.project_id for m in memberships
            if any(role.allowed_to(permission) for role in m.roles)
        }

        clauses = []
        builtin = Role.non_member() if user.logged else Role.anonymous()
        if builtin.allowed_to(permission):
            public = cls.is_public.is_(True)
            if member_project_ids:
                public = and_(public, ~cls.id.in_(member_project_ids))
            clauses.append(public)
        if allowed_project_ids:
            clauses.append(cls.id.in_(allowed_project_ids))

        if not clauses:
            return false()
        return and_(base, or_(*clauses))

    @classmethod
    def visible(cls, user):
        return cls.query.filter(cls.allowed_to_condition(user, "view_project"))

    def visible_to(self, user):
        return user.allowed_to("view_project", self)

    # --- Validation ---

    def _validate(self):
        if not (self.name or "").strip():
            self.add_error("name", "blank")
        identifier = self.identifier or ""
        if not identifier:
            self.add_error("identifier", "blank")
        else:
            query = Project.query.filter(Project.identifier == identifier)
            if self.id is not None:
                query = query.filter(Project.id != self.id)
            if query.first() is not None:
                self.add_error("identifier", "taken")

    def __str__(self):
        return self.name

    def __repr__(self):
        return f"<Project {self.identifier}>"


class EnabledModule(db.Model):
    __tablename__ = "enabled_modules"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    name = db.Column(db.String(255), nullable=False)

    # --- Relationships ---
    project = db.relationship("Project", back_populates="enabled_modules")

    def __repr__(self):
        return f"<EnabledModule {self.name} project={self.project_id}>"
