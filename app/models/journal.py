"""Journal model.

Records changes made to a journaled object (currently issues): who made
them, optional notes, and ``changed_data`` mapping each changed attribute
to ``[old, new]``.
"""

from app.extensions import db


class Journal(db.Model):
    __tablename__ = "journals"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    journaled_type = db.Column(db.String(50), nullable=False)
    journaled_id = db.Column(db.String(36), nullable=False)
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    version = db.Column(db.Integer, nullable=False, default=1)
    notes = db.Column(db.Text, nullable=True)
    changed_data = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    __table_args__ = (
        db.Index("ix_journals_journaled", "journaled_type", "journaled_id"),
    )

    # --- Relationships ---
    user = db.relationship("User", foreign_keys=[user_id])

    @classmethod
    def for_object(cls, obj):
        return (
            cls.query
            .filter_by(journaled_type=type(obj).__name__, journaled_id=obj.id)
            .order_by(cls.version)
        )

    @property
    def journaled(self):
        from app.models.watcher import WATCHABLE_TYPES

        model = WATCHABLE_TYPES.get(self.journaled_type)
        if model is None:
            return None
        return db.session.get(model, self.journaled_id)

    def __repr__(self):
        return f"<Journal {self.journaled_type}#{self.journaled_id} v{self.version}>"
