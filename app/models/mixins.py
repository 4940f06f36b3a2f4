"""Mixins for SQLAlchemy models."""

from sqlalchemy import inspect

from app.extensions import db


class ValidationMixin:
    """Field-tagged validation errors, reported on the record.

    Subclasses implement ``_validate()`` and call ``add_error()``;
    ``validate()`` never raises. Errors are symbols ("invalid", "blank",
    "taken", ...) keyed by field name, with "base" for record-wide errors.
    """

    @property
    def errors(self):
        # Loaded rows skip __init__, so the dict is created lazily.
        return self.__dict__.setdefault("_errors", {})

    def add_error(self, field, error):
        self.errors.setdefault(field, []).append(error)

    def _validate(self):
        raise NotImplementedError

    def validate(self):
        """Run all validations. Returns True when the record is valid."""
        self.errors.clear()
        self._validate()
        return not self.errors

    @property
    def new_record(self):
        return not inspect(self).persistent

    def save(self):
        """Validate, then add and flush. Returns False without touching
        the session when validation fails. The caller commits."""
        if not self.validate():
            return False
        db.session.add(self)
        db.session.flush()
        return True
