"""Watcher model.

A watcher records that a user wants notifications about one object
(issue, wiki, wiki page). The watched object is referenced generically by
(watchable_type, watchable_id); every model mixing in Watchable registers
itself under its class name.

A watch is only valid while the user is active and is among the object's
possible watchers. Watcher.prune() removes watches on objects the user can
no longer see.
"""

import logging
import uuid

from app.extensions import db
from app.models.mixins import ValidationMixin

logger = logging.getLogger(__name__)

# class name -> model class, filled by Watchable subclasses
WATCHABLE_TYPES = {}


class Watchable:
    """Mixin for models users can watch.

    Models implement ``possible_watcher_users()`` and ``visible_to(user)``.
    """

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        WATCHABLE_TYPES[cls.__name__] = cls

    @property
    def watchable_type(self):
        return type(self).__name__

    def watchers(self):
        if self.id is None:
            return []
        return Watcher.query.filter_by(
            watchable_type=self.watchable_type, watchable_id=self.id
        ).all()

    def watcher_users(self):
        return [w.user for w in self.watchers() if w.user is not None]

    def watched_by(self, user):
        return any(u == user for u in self.watcher_users())

    def add_watcher(self, user):
        """Watch this object as ``user``. Returns the Watcher; check its
        ``errors`` when it could not be saved."""
        # user_id only: a rejected watcher must not land in user.watches
        watcher = Watcher(user_id=user.id)
        watcher.watchable = self
        watcher.save()
        return watcher

    def remove_watcher(self, user):
        removed = 0
        for watcher in self.watchers():
            if watcher.user_id == user.id:
                db.session.delete(watcher)
                removed += 1
        db.session.flush()
        return removed

    def set_watcher(self, user, watching=True):
        if watching:
            return self.add_watcher(user)
        return self.remove_watcher(user)

    def watcher_recipients(self):
        """Mail addresses of active watchers who want notifications and
        can still see this object."""
        recipients = []
        for user in self.watcher_users():
            if not user.active or user.mail_notification == "none":
                continue
            if not self.visible_to(user):
                continue
            if user.mail and user.mail not in recipients:
                recipients.append(user.mail)
        return recipients

    def delete_watchers(self):
        for watcher in self.watchers():
            db.session.delete(watcher)

    def possible_watcher_users(self):
        raise NotImplementedError

    def visible_to(self, user):
        raise NotImplementedError


class Watcher(ValidationMixin, db.Model):
    __tablename__ = "watchers"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    watchable_type = db.Column(db.String(50), nullable=False)
    watchable_id = db.Column(db.String(36), nullable=False)
    user_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    __table_args__ = (
        db.UniqueConstraint(
            "watchable_type", "watchable_id", "user_id", name="uq_watcher"
        ),
        db.Index("ix_watchers_watchable", "watchable_type", "watchable_id"),
    )

    # --- Relationships ---
    user = db.relationship("User", back_populates="watches")

    @property
    def watchable(self):
        cached = self.__dict__.get("_watchable")
        if cached is not None:
            return cached
        cls = WATCHABLE_TYPES.get(self.watchable_type)
        if cls is None or self.watchable_id is None:
            return None
        obj = db.session.get(cls, self.watchable_id)
        self.__dict__["_watchable"] = obj
        return obj

    @watchable.setter
    def watchable(self, obj):
        self.__dict__["_watchable"] = obj
        self.watchable_type = obj.watchable_type if obj is not None else None
        self.watchable_id = obj.id if obj is not None else None

    # --- Pruning ---

    @classmethod
    def prune(cls, user=None, project=None):
        """Remove watches on objects their users can no longer see.

        Optionally limited to one user and/or to objects of one project.
        Returns the number of removed watchers. Flushes; the caller commits.
        """
        from app.models.user import User

        if user is not None:
            pruned = cls._prune_single_user(user, project)
        else:
            pruned = 0
            user_ids = db.session.query(cls.user_id).distinct()
            for u in User.query.filter(User.id.in_(user_ids)).all():
                pruned += cls._prune_single_user(u, project)
        if pruned:
            logger.info(f"Pruned {pruned} watcher(s)")
        return pruned

    @classmethod
    def _prune_single_user(cls, user, project=None):
        from app.models.user import User

        if not isinstance(user, User):
            return 0
        pruned = 0
        for watcher in cls.query.filter_by(user_id=user.id).all():
            watchable = watcher.watchable
            if watchable is None:
                continue
            if project is not None:
                if getattr(watchable, "project", None) != project:
                    continue
            if not watchable.visible_to(user):
                db.session.delete(watcher)
                pruned += 1
        db.session.flush()
        return pruned

    # --- Validation ---

    def _validate(self):
        from app.models.user import User

        watchable = self.watchable
        user = self.user
        if user is None and self.user_id is not None:
            user = db.session.get(User, self.user_id)
        if watchable is None:
            self.add_error("watchable", "blank")
        if user is None:
            self.add_error("user", "blank")
        if watchable is None or user is None:
            return

        query = Watcher.query.filter_by(
            watchable_type=self.watchable_type,
            watchable_id=self.watchable_id,
            user_id=user.id,
        )
        if self.id is not None:
            query = query.filter(Watcher.id != self.id)
        if query.first() is not None:
            self.add_error("user_id", "taken")

        if not user.active:
            self.add_error("user_id", "invalid")
        elif user not in watchable.possible_watcher_users():
            self.add_error("user_id", "invalid")

    def __repr__(self):
        return f"<Watcher {self.watchable_type}#{self.watchable_id} user={self.user_id}>"
