"""Wiki models.

- Wiki: one per project; watchable (notified on every page change).
- WikiPage: a titled page; watchable.
- WikiContent: the current text of a page, with its author and version.
"""

import uuid

from app.extensions import db
from app.models.watcher import Watchable


def _wiki_watchers(project):
    return [
        u for u in project.users()
        if u.allowed_to("view_wiki_pages", project)
    ]


class Wiki(Watchable, db.Model):
    __tablename__ = "wikis"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    start_page = db.Column(db.String(255), nullable=False, default="Wiki")

    # --- Relationships ---
    project = db.relationship("Project", back_populates="wiki")
    pages = db.relationship(
        "WikiPage", back_populates="wiki", cascade="all, delete-orphan",
        order_by="WikiPage.title",
    )

    def visible_to(self, user):
        return user.allowed_to("view_wiki_pages", self.project)

    def possible_watcher_users(self):
        return _wiki_watchers(self.project)

    def find_page(self, title):
        return WikiPage.query.filter(
            WikiPage.wiki_id == self.id,
            db.func.lower(WikiPage.title) == (title or "").lower(),
        ).first()

    def __repr__(self):
        return f"<Wiki project={self.project_id}>"


class WikiPage(Watchable, db.Model):
    __tablename__ = "wiki_pages"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    wiki_id = db.Column(
        db.String(36),
        db.ForeignKey("wikis.id", ondelete="CASCADE"),
        nullable=False,
    )
    title = db.Column(db.String(255), nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    wiki = db.relationship("Wiki", back_populates="pages")
    content = db.relationship(
        "WikiContent", back_populates="page", uselist=False,
        cascade="all, delete-orphan",
    )

    @property
    def project(self):
        return self.wiki.project if self.wiki is not None else None

    def visible_to(self, user):
        return user.allowed_to("view_wiki_pages", self.project)

    def possible_watcher_users(self):
        return _wiki_watchers(self.project)

    def __repr__(self):
        return f"<WikiPage {self.title}>"


class WikiContent(db.Model):
    __tablename__ = "wiki_contents"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    page_id = db.Column(
        db.String(36),
        db.ForeignKey("wiki_pages.id", ondelete="CASCADE"),
        nullable=False,
    )
    author_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    text = db.Column(db.Text, nullable=False, default="")
    comments = db.Column(db.String(255), nullable=True)
    version = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    page = db.relationship("WikiPage", back_populates="content")
    author = db.relationship("User", foreign_keys=[author_id])

    @property
    def project(self):
        return self.page.project if self.page is not None else None

    def recipients(self):
        """Mails of project members who want notifications and can read
        the wiki."""
        project = self.project
        notified = []
        for membership in project.members:
            principal = membership.principal
            if getattr(principal, "type", None) != "User":
                continue
            if not (membership.mail_notification or principal.mail_notification == "all"):
                continue
            if not principal.active or not principal.mail:
                continue
            if principal.allowed_to("view_wiki_pages", project):
                notified.append(principal.mail)
        return notified

    def __repr__(self):
        return f"<WikiContent page={self.page_id} v{self.version}>"
