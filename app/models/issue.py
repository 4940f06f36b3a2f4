"""Issue models.

- Issue: a tracked issue inside a project.
- Tracker, IssueStatus, IssuePriority: global enumerations.
- IssueCategory, Version: per-project groupings.

Issues are watchable; who may watch or see an issue follows the
view_issues permission, private issues being limited to their author and
assignee.
"""

import uuid

from app.extensions import db
from app.models.mixins import ValidationMixin
from app.models.watcher import Watchable


class Tracker(db.Model):
    __tablename__ = "trackers"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(30), nullable=False, unique=True)
    position = db.Column(db.Integer, nullable=False, default=1)

    def __str__(self):
        return self.name

    def __repr__(self):
        return f"<Tracker {self.name}>"


class IssueStatus(db.Model):
    __tablename__ = "issue_statuses"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(30), nullable=False, unique=True)
    is_closed = db.Column(db.Boolean, nullable=False, default=False)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    position = db.Column(db.Integer, nullable=False, default=1)

    @classmethod
    def default(cls):
        return cls.query.filter_by(is_default=True).first()

    @classmethod
    def ordered(cls):
        return cls.query.order_by(cls.position).all()

    def __str__(self):
        return self.name

    def __repr__(self):
        return f"<IssueStatus {self.name}>"


class IssuePriority(db.Model):
    __tablename__ = "issue_priorities"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(30), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=1)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    active = db.Column(db.Boolean, nullable=False, default=True)

    @classmethod
    def default(cls):
        return cls.query.filter_by(is_default=True).first()

    def __str__(self):
        return self.name

    def __repr__(self):
        return f"<IssuePriority {self.name}>"


class IssueCategory(db.Model):
    __tablename__ = "issue_categories"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    name = db.Column(db.String(30), nullable=False)
    assigned_to_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )

    # --- Relationships ---
    project = db.relationship("Project", back_populates="issue_categories")
    assigned_to = db.relationship("User", foreign_keys=[assigned_to_id])

    def __str__(self):
        return self.name

    def __repr__(self):
        return f"<IssueCategory {self.name}>"


class Version(db.Model):
    __tablename__ = "versions"

    SHARINGS = ["none", "descendants", "system"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    name = db.Column(db.String(60), nullable=False)
    effective_date = db.Column(db.Date, nullable=True)
    sharing = db.Column(db.String(20), nullable=False, default="none")

    # --- Relationships ---
    project = db.relationship("Project", back_populates="versions")

    @classmethod
    def shared_with(cls, project):
        """Versions usable by ``project``: its own, those shared by its
        ancestors with descendants, and system-wide ones."""
        ancestor_ids = []
        parent = project.parent
        while parent is not None:
            ancestor_ids.append(parent.id)
            parent = parent.parent
        return (
            cls.query
            .filter(
                db.or_(
                    cls.project_id == project.id,
                    cls.sharing == "system",
                    db.and_(
                        cls.sharing == "descendants",
                        cls.project_id.in_(ancestor_ids),
                    ),
                )
            )
            .order_by(cls.effective_date, cls.name)
            .all()
        )

    def __str__(self):
        return self.name

    def __repr__(self):
        return f"<Version {self.name}>"


class Issue(Watchable, ValidationMixin, db.Model):
    __tablename__ = "issues"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id"), nullable=False
    )
    tracker_id = db.Column(
        db.String(36), db.ForeignKey("trackers.id"), nullable=False
    )
    status_id = db.Column(
        db.String(36), db.ForeignKey("issue_statuses.id"), nullable=False
    )
    priority_id = db.Column(
        db.String(36), db.ForeignKey("issue_priorities.id"), nullable=True
    )
    category_id = db.Column(
        db.String(36), db.ForeignKey("issue_categories.id"), nullable=True
    )
    fixed_version_id = db.Column(
        db.String(36), db.ForeignKey("versions.id"), nullable=True
    )
    author_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False
    )
    assigned_to_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    subject = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_private = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    project = db.relationship("Project", back_populates="issues")
    tracker = db.relationship("Tracker")
    status = db.relationship("IssueStatus")
    priority = db.relationship("IssuePriority")
    category = db.relationship("IssueCategory")
    fixed_version = db.relationship("Version")
    author = db.relationship("User", foreign_keys=[author_id])
    assigned_to = db.relationship("User", foreign_keys=[assigned_to_id])
    time_entries = db.relationship(
        "TimeEntry", back_populates="issue", lazy="dynamic"
    )

    @property
    def closed(self):
        return self.status is not None and self.status.is_closed

    # --- Visibility ---

    def visible_to(self, user):
        if user is None or not user.allowed_to("view_issues", self.project):
            return False
        if not self.is_private or user.is_admin:
            return True
        return user.id in (self.author_id, self.assigned_to_id)

    @classmethod
    def visible(cls, user, project=None):
        """Issues ``user`` may see, optionally within ``project``'s hierarchy."""
        from app.models.project import Project

        query = cls.query.join(Project, cls.project_id == Project.id).filter(
            Project.allowed_to_condition(user, "view_issues")
        )
        if project is not None:
            query = query.filter(
                cls.project_id.in_([p.id for p in project.hierarchy()])
            )
        if not user.is_admin:
            query = query.filter(
                db.or_(
                    cls.is_private.is_(False),
                    cls.author_id == user.id,
                    cls.assigned_to_id == user.id,
                )
            )
        return query

    def possible_watcher_users(self):
        users = [
            u for u in self.project.users()
            if u.allowed_to("view_issues", self.project)
        ]
        if self.is_private:
            users = [u for u in users if self.visible_to(u)]
        return users

    def recipients(self):
        """Mails of the author, assignee and project members who want
        notifications about this issue."""
        notified = []
        for membership in self.project.members:
            principal = membership.principal
            if getattr(principal, "type", None) != "User":
                continue
            if membership.mail_notification or principal.mail_notification == "all":
                notified.append(principal)
        for user in (self.author, self.assigned_to):
            if user is not None and user not in notified and user.logged:
                if user.notify_about(self):
                    notified.append(user)
        return [
            u.mail for u in notified
            if u.active and u.mail and u.mail_notification != "none"
            and self.visible_to(u)
        ]

    def _validate(self):
        if not (self.subject or "").strip():
            self.add_error("subject", "blank")
        elif len(self.subject) > 255:
            self.add_error("subject", "too_long")
        for field in ("project", "tracker", "status", "author"):
            if getattr(self, field) is None and getattr(self, f"{field}_id") is None:
                self.add_error(f"{field}_id", "blank")

    def __str__(self):
        return f"{self.tracker} #{self.id}: {self.subject}"

    def __repr__(self):
        return f"<Issue {self.subject[:30]}>"
