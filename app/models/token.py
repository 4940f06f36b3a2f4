"""Token model.

Per-user secret keys: "feeds" (RSS key), "api" (API key) and "autologin"
(remember-me cookie value).
"""

import secrets
import uuid
from datetime import datetime, timedelta, timezone

from app.extensions import db


def generate_token_value():
    """40 hex chars."""
    return secrets.token_hex(20)


class Token(db.Model):
    __tablename__ = "tokens"

    ACTIONS = ["feeds", "api", "autologin"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    action = db.Column(db.String(30), nullable=False)
    value = db.Column(
        db.String(40), nullable=False, unique=True, default=generate_token_value
    )
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # --- Relationships ---
    user = db.relationship("User", back_populates="tokens")

    def expired(self, days):
        """True when older than ``days`` days."""
        created = self.created_at
        if created.tzinfo is None:
            # SQLite drops tzinfo
            created = created.replace(tzinfo=timezone.utc)
        return created <= datetime.now(timezone.utc) - timedelta(days=days)

    def __repr__(self):
        return f"<Token {self.action} user={self.user_id}>"
