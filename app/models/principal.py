"""Principal model.

A principal is anything that can hold a project membership: a User or a
Group. Both live in the ``users`` table, discriminated by ``type``
(single-table inheritance).
"""

import uuid

from sqlalchemy import or_

from app.extensions import db
from app.models.mixins import ValidationMixin

group_users = db.Table(
    "group_users",
    db.Column(
        "group_id",
        db.String(36),
        db.ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    db.Column(
        "user_id",
        db.String(36),
        db.ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Principal(ValidationMixin, db.Model):
    __tablename__ = "users"

    # -- Account statuses --
    STATUS_BUILTIN = 0
    STATUS_ACTIVE = 1
    STATUS_REGISTERED = 2
    STATUS_LOCKED = 3

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    type = db.Column(db.String(30), nullable=False)  # User | Group
    login = db.Column(db.String(256), nullable=False, default="")
    firstname = db.Column(db.String(30), nullable=False, default="")
    lastname = db.Column(db.String(30), nullable=False, default="")
    mail = db.Column(db.String(60), nullable=False, default="")
    password_hash = db.Column(db.String(255), nullable=False, default="")
    admin = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(db.Integer, nullable=False, default=STATUS_ACTIVE)
    kind = db.Column(
        db.String(20), nullable=False, default="regular"
    )  # regular | anonymous | deleted
    language = db.Column(db.String(5), default="")
    mail_notification = db.Column(db.String(30), nullable=False, default="")
    last_login_on = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    members = db.relationship(
        "Member",
        back_populates="principal",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {
        "polymorphic_on": type,
        "polymorphic_identity": "Principal",
    }

    # --- Query helpers ---

    @classmethod
    def active(cls):
        """Groups and active users."""
        return cls.query.filter(
            or_(
                Principal.type == "Group",
                db.and_(
                    Principal.type == "User",
                    Principal.status == cls.STATUS_ACTIVE,
                ),
            )
        )

    @classmethod
    def active_or_registered(cls):
        return cls.query.filter(
            or_(
                Principal.type == "Group",
                db.and_(
                    Principal.type == "User",
                    Principal.status.in_(
                        [cls.STATUS_ACTIVE, cls.STATUS_REGISTERED]
                    ),
                ),
            )
        )

    @staticmethod
    def not_in_project(query, project):
        """Restrict ``query`` to principals without a membership in ``project``."""
        from app.models.member import Member

        member_ids = db.session.query(Member.principal_id).filter(
            Member.project_id == project.id
        )
        return query.filter(~Principal.id.in_(member_ids))

    @staticmethod
    def like(query, q):
        """Case-insensitive substring match on login, names and mail."""
        s = f"%{(q or '').strip().lower()}%"
        return query.filter(
            or_(
                db.func.lower(Principal.login).like(s),
                db.func.lower(Principal.firstname).like(s),
                db.func.lower(Principal.lastname).like(s),
                db.func.lower(Principal.mail).like(s),
            )
        ).order_by(
            Principal.type,
            Principal.login,
            Principal.lastname,
            Principal.firstname,
            Principal.mail,
        )

    @classmethod
    def search_scope(cls, q):
        return Principal.like(Principal.active_or_registered(), q)

    @classmethod
    def search_scope_without_project(cls, project, q):
        return Principal.not_in_project(Principal.search_scope(q), project)

    @classmethod
    def possible_members(cls, criteria, limit):
        return Principal.search_scope(criteria).limit(limit).all()

    @staticmethod
    def paginate_scope(query, page=1, page_limit=10):
        return query.paginate(page=page, per_page=page_limit, error_out=False)

    # --- Display ---

    def name(self, formatter=None):
        return self.lastname

    def sort_key(self):
        """Users sort before groups; then case-insensitive by name."""
        return (0 if self.type == "User" else 1, str(self.name()).lower())

    def memberships_query(self):
        """Memberships on active projects, ordered by project name."""
        from app.models.member import Member
        from app.models.project import Project

        return (
            Member.query
            .join(Project, Member.project_id == Project.id)
            .filter(
                Member.principal_id == self.id,
                Project.status == Project.STATUS_ACTIVE,
            )
            .order_by(Project.name)
        )

    @property
    def memberships(self):
        return self.memberships_query().all()

    def membership_for(self, project):
        from app.models.member import Member

        if project is None or self.id is None:
            return None
        return Member.query.filter_by(
            principal_id=self.id, project_id=project.id
        ).first()

    def _validate(self):
        pass

    def __str__(self):
        return str(self.name())
