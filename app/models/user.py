"""User model.

Stores authentication credentials, profile info and the notification
preference. Flask-Login integration via UserMixin.

Two built-in sentinel users exist at most once per database: the
anonymous user (stands in for visitors) and the deleted user (takes over
authorship of content left behind by destroyed accounts). They are
ordinary rows tagged by ``kind``; their behaviour comes from KINDS.
"""

import re
import secrets
import string

from flask import current_app, has_app_context
from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from app.extensions import db
from app.models.principal import Principal, group_users

KIND_REGULAR = "regular"
KIND_ANONYMOUS = "anonymous"
KIND_DELETED = "deleted"

# Per-kind behaviour. Sentinels are never logged in, never admins,
# cannot be destroyed, and render a fixed label instead of their name.
KINDS = {
    KIND_REGULAR: {"logged": True, "label": None, "destroyable": True},
    KIND_ANONYMOUS: {"logged": False, "label": "Anonymous", "destroyable": False},
    KIND_DELETED: {"logged": False, "label": "Deleted user", "destroyable": False},
}

# Display formats: ordered fields joined by a delimiter.
USER_FORMATS = {
    "firstname_lastname": (("firstname", "lastname"), " "),
    "firstname": (("firstname",), " "),
    "lastname_firstname": (("lastname", "firstname"), " "),
    "lastname_coma_firstname": (("lastname", "firstname"), ", "),
    "username": (("login",), " "),
}

MAIL_NOTIFICATION_OPTIONS = [
    "all",
    "selected",
    "only_my_events",
    "only_assigned",
    "only_owner",
    "none",
]

# Journals rewritten per batch when a user is destroyed
USER_DELETION_JOURNAL_BUCKET_SIZE = 1000

LOGIN_RE = re.compile(r"^[a-z0-9_\-@\.]*$", re.IGNORECASE)
MAIL_RE = re.compile(r"^([^@\s]+)@((?:[-a-z0-9]+\.)+[a-z]{2,})$", re.IGNORECASE)


def _setting(key, default=None):
    if has_app_context():
        return current_app.config.get(key, default)
    return default


class User(UserMixin, Principal):
    __mapper_args__ = {"polymorphic_identity": "User"}

    groups = db.relationship(
        "Group",
        secondary=group_users,
        primaryjoin=lambda: Principal.id == group_users.c.user_id,
        secondaryjoin=lambda: Principal.id == group_users.c.group_id,
        back_populates="users",
    )
    watches = db.relationship(
        "Watcher", back_populates="user", cascade="all, delete-orphan"
    )
    tokens = db.relationship(
        "Token", back_populates="user", cascade="all, delete-orphan"
    )

    def __init__(self, **kwargs):
        password = kwargs.pop("password", None)
        super().__init__(**kwargs)
        if password is not None:
            self.set_password(password)

    # UserMixin compares by get_id(), which makes unsaved users equal.
    def __eq__(self, other):
        if isinstance(other, User) and self.id is not None:
            return self.id == other.id
        return self is other

    def __ne__(self, other):
        return not self.__eq__(other)

    __hash__ = object.__hash__

    # --- Kind dispatch ---

    @property
    def _kind(self):
        return KINDS.get(self.kind or KIND_REGULAR, KINDS[KIND_REGULAR])

    @property
    def logged(self):
        return self._kind["logged"]

    @property
    def builtin(self):
        return self.kind in (KIND_ANONYMOUS, KIND_DELETED)

    @property
    def is_admin(self):
        return bool(self.admin) and self.kind == KIND_REGULAR

    @property
    def destroyable(self):
        return self._kind["destroyable"]

    # --- Flask-Login ---

    @property
    def is_authenticated(self):
        return self.logged

    @property
    def is_anonymous(self):
        return not self.logged

    @property
    def is_active(self):
        return self.active

    # --- Status ---

    @property
    def active(self):
        return self.status == self.STATUS_ACTIVE

    @property
    def registered(self):
        return self.status == self.STATUS_REGISTERED

    @property
    def locked(self):
        return self.status == self.STATUS_LOCKED

    def activate(self):
        self.status = self.STATUS_ACTIVE

    def register(self):
        self.status = self.STATUS_REGISTERED

    def lock(self):
        self.status = self.STATUS_LOCKED

    # --- Credentials ---

    def set_password(self, clear_password):
        """Hash and store ``clear_password`` (salted by werkzeug)."""
        self.__dict__["_clear_password"] = clear_password
        self.password_hash = generate_password_hash(clear_password)

    def check_password(self, clear_password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, clear_password or "")

    def random_password(self):
        """Set a random 40-char password. Useful for automated user creation."""
        chars = string.ascii_letters + string.digits
        self.set_password("".join(secrets.choice(chars) for _ in range(40)))
        return self

    # --- Display ---

    def name(self, formatter=None):
        """Full name rendered through one of USER_FORMATS."""
        label = self._kind["label"]
        if label is not None:
            return label
        key = formatter or _setting("USER_FORMAT", "firstname_lastname")
        fields, delimiter = USER_FORMATS.get(key, USER_FORMATS["firstname_lastname"])
        return delimiter.join(getattr(self, f) or "" for f in fields)

    @property
    def visible_mail(self):
        return None if self.builtin else self.mail

    # --- Sentinels ---

    @classmethod
    def anonymous(cls):
        return cls._find_or_create_sentinel(KIND_ANONYMOUS, "Anonymous")

    @classmethod
    def deleted(cls):
        return cls._find_or_create_sentinel(KIND_DELETED, "Deleted user")

    @classmethod
    def _find_or_create_sentinel(cls, kind, lastname):
        user = cls.query.filter_by(kind=kind).first()
        if user is None:
            user = cls(
                kind=kind,
                login="",
                firstname="",
                lastname=lastname,
                mail="",
                status=cls.STATUS_BUILTIN,
            )
            if not user.save():
                raise RuntimeError(f"Unable to create the {kind} user.")
            db.session.commit()
        return user

    # --- Lookups ---

    @classmethod
    def find_by_login(cls, login):
        """Exact match first, then case-insensitive."""
        if not login:
            return None
        user = cls.query.filter(Principal.login == login).first()
        if user is None:
            user = cls.query.filter(
                db.func.lower(Principal.login) == str(login).lower()
            ).first()
        return user

    @classmethod
    def find_by_mail(cls, mail):
        return cls.query.filter(
            db.func.lower(Principal.mail) == str(mail or "").lower()
        ).first()

    @classmethod
    def find_all_by_mails(cls, mails):
        mails = [m.lower() for m in mails if m]
        if not mails:
            return []
        return cls.query.filter(db.func.lower(Principal.mail).in_(mails)).all()

    @classmethod
    def in_group(cls, group):
        group_id = getattr(group, "id", group)
        ids = db.session.query(group_users.c.user_id).filter(
            group_users.c.group_id == group_id
        )
        return cls.query.filter(Principal.id.in_(ids))

    @classmethod
    def not_in_group(cls, group):
        group_id = getattr(group, "id", group)
        ids = db.session.query(group_users.c.user_id).filter(
            group_users.c.group_id == group_id
        )
        return cls.query.filter(~Principal.id.in_(ids))

    # --- Roles & projects ---

    def roles_for_project(self, project):
        """Roles held on ``project``. Archived projects grant no role.

        Members get their membership roles; logged-in non-members get the
        non-member role; visitors get the anonymous role.
        """
        from app.models.role import Role

        if project is None or not project.active:
            return []
        if self.logged:
            membership = self.membership_for(project)
            if membership is not None:
                return membership.roles
            return [Role.non_member()]
        return [Role.anonymous()]

    def member_of(self, project):
        return any(role.member for role in self.roles_for_project(project))

    def projects_by_role(self):
        """Map of role -> projects the user holds that role on."""
        result = {}
        for membership in self.memberships:
            for role in membership.roles:
                projects = result.setdefault(role, [])
                if membership.project not in projects:
                    projects.append(membership.project)
        return result

    def number_of_known_projects(self):
        from app.models.project import Project

        if self.is_admin:
            return Project.query.count()
        return Project.query.filter_by(is_public=True).count() + len(self.memberships)

    # --- Notifications ---

    @property
    def notified_project_ids(self):
        return [m.project_id for m in self.memberships if m.mail_notification]

    @notified_project_ids.setter
    def notified_project_ids(self, ids):
        ids = set(ids or [])
        for membership in self.members:
            membership.mail_notification = membership.project_id in ids

    def valid_notification_options(self):
        """'selected' is only offered to users with at least one membership."""
        if not self.memberships:
            return [o for o in MAIL_NOTIFICATION_OPTIONS if o != "selected"]
        return list(MAIL_NOTIFICATION_OPTIONS)

    def notify_about(self, obj):
        """Should this user be notified about ``obj``? Only issues are
        classified; any other event only reaches users on 'all'."""
        from app.models.issue import Issue

        option = self.mail_notification
        if option == "all":
            return True
        if not isinstance(obj, Issue):
            return False
        is_author = obj.author_id is not None and obj.author_id == self.id
        is_assignee = (
            obj.assigned_to_id is not None and obj.assigned_to_id == self.id
        )
        if option in ("selected", "only_my_events"):
            return is_author or is_assignee
        if option == "only_assigned":
            return is_assignee
        if option == "only_owner":
            return is_author
        return False

    # --- Authorization ---

    def allowed_to(self, action, context=None, **options):
        """Is this user allowed to do ``action`` in ``context``?

        ``context`` is a project, a collection of projects (allowed on
        every one of them), or None together with ``globally=True``.
        """
        from app.services.allowance_service import get_resolver

        return get_resolver().allowed_to(self, action, context, **options)

    def allowed_to_in_project(self, action, project, **options):
        from app.services.allowance_service import get_resolver

        return get_resolver().allowed_to_in_project(self, action, project, **options)

    def allowed_to_globally(self, action, **options):
        from app.services.allowance_service import get_resolver

        return get_resolver().allowed_to_globally(self, action, **options)

    # --- Validation ---

    def sanitize_mail_notification_setting(self):
        if not self.mail_notification:
            self.mail_notification = _setting(
                "DEFAULT_NOTIFICATION_OPTION", "only_my_events"
            )

    def save(self):
        if self.new_record:
            self.sanitize_mail_notification_setting()
        self.mail = (self.mail or "").strip()
        return super().save()

    def _validate(self):
        if not self.builtin:
            for field in ("login", "firstname", "lastname", "mail"):
                if not (getattr(self, field) or "").strip():
                    self.add_error(field, "blank")

        login = self.login or ""
        if login:
            if not LOGIN_RE.match(login):
                self.add_error("login", "invalid")
            if len(login) > 256:
                self.add_error("login", "too_long")
            if self._taken("login", login):
                self.add_error("login", "taken")

        for field in ("firstname", "lastname"):
            if len(getattr(self, field) or "") > 30:
                self.add_error(field, "too_long")

        mail = (self.mail or "").strip()
        if mail:
            if not MAIL_RE.match(mail):
                self.add_error("mail", "invalid")
            if len(mail) > 60:
                self.add_error("mail", "too_long")
            if self._taken("mail", mail):
                self.add_error("mail", "taken")

        clear_password = self.__dict__.get("_clear_password")
        minimum = int(_setting("PASSWORD_MIN_LENGTH", 4))
        if clear_password is not None and len(clear_password) < minimum:
            self.add_error("password", "too_short")

        if self.mail_notification and self.mail_notification not in MAIL_NOTIFICATION_OPTIONS:
            self.add_error("mail_notification", "inclusion")

        # There can be only one of each sentinel
        if self.new_record and self.builtin:
            if User.query.filter_by(kind=self.kind).first() is not None:
                self.add_error("base", f"A {self.kind} user already exists.")

    def _taken(self, field, value):
        column = getattr(Principal, field)
        query = Principal.query.filter(db.func.lower(column) == value.lower())
        if self.id is not None:
            query = query.filter(Principal.id != self.id)
        return query.first() is not None

    def __repr__(self):
        return f"<User {self.login or self.kind}>"
