"""Time tracking models.

- TimeEntryActivity: enumeration of kinds of work (Design, Development...).
- TimeEntry: hours a user spent on a project (optionally on one issue) on
  a given day. tyear/tmonth/tweek are derived from spent_on so reports can
  group by period without date arithmetic in SQL.
"""

import math
import re
import uuid
from datetime import date, datetime

from sqlalchemy import event

from app.extensions import db
from app.models.mixins import ValidationMixin

MAX_HOURS = 1000  # exclusive

_HOURS_HM = re.compile(r"^(\d+)\s*(?:h|:)\s*(\d+)\s*(?:m|min)?$", re.IGNORECASE)
_HOURS_H = re.compile(r"^(\d+(?:[.,]\d+)?)\s*h?$", re.IGNORECASE)
_HOURS_M = re.compile(r"^(\d+)\s*(?:m|min)$", re.IGNORECASE)


def parse_hours(value):
    """Convert user input into a float number of hours.

    Accepts numbers, "1.5", "1,5", "1.5h", "2:30", "2h30", "2h 30m", "45m".
    Unparseable strings are returned unchanged so validation can flag them.
    """
    if value is None or isinstance(value, (int, float)):
        return value
    text = str(value).strip()
    if not text:
        return None
    m = _HOURS_HM.match(text)
    if m:
        return int(m.group(1)) + int(m.group(2)) / 60.0
    m = _HOURS_M.match(text)
    if m:
        return int(m.group(1)) / 60.0
    m = _HOURS_H.match(text)
    if m:
        return float(m.group(1).replace(",", "."))
    return value


class TimeEntryActivity(db.Model):
    __tablename__ = "time_entry_activities"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(30), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=1)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    active = db.Column(db.Boolean, nullable=False, default=True)

    @classmethod
    def default(cls):
        return cls.query.filter_by(is_default=True, active=True).first()

    @classmethod
    def shared(cls):
        return cls.query.filter_by(active=True).order_by(cls.position).all()

    def __str__(self):
        return self.name

    def __repr__(self):
        return f"<TimeEntryActivity {self.name}>"


class TimeEntry(ValidationMixin, db.Model):
    __tablename__ = "time_entries"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id"), nullable=False
    )
    issue_id = db.Column(
        db.String(36),
        db.ForeignKey("issues.id", ondelete="SET NULL"),
        nullable=True,
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False
    )
    activity_id = db.Column(
        db.String(36), db.ForeignKey("time_entry_activities.id"), nullable=False
    )
    hours = db.Column(db.Float, nullable=False)
    comments = db.Column(db.String(255), nullable=True)
    spent_on = db.Column(db.Date, nullable=False)
    tyear = db.Column(db.Integer, nullable=False)
    tmonth = db.Column(db.Integer, nullable=False)
    tweek = db.Column(db.Integer, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    project = db.relationship("Project", back_populates="time_entries")
    issue = db.relationship("Issue", back_populates="time_entries")
    user = db.relationship("User", foreign_keys=[user_id])
    activity = db.relationship("TimeEntryActivity")

    def __init__(self, **kwargs):
        if "hours" in kwargs:
            kwargs["hours"] = parse_hours(kwargs["hours"])
        super().__init__(**kwargs)
        if self.activity is None and self.activity_id is None:
            self.activity = TimeEntryActivity.default()
        self.recompute_derived_fields()

    def set_hours(self, value):
        self.hours = parse_hours(value)

    def recompute_derived_fields(self):
        """Derive tyear, tmonth and tweek (ISO week) from spent_on.

        Must run after any change to spent_on; the mapper hooks below
        call it before every insert and update.
        """
        spent_on = self.spent_on
        if isinstance(spent_on, datetime):
            spent_on = spent_on.date()
            self.spent_on = spent_on
        if isinstance(spent_on, date):
            self.tyear = spent_on.year
            self.tmonth = spent_on.month
            self.tweek = spent_on.isocalendar()[1]
        else:
            self.tyear = None
            self.tmonth = None
            self.tweek = None

    def set_default_project(self):
        if self.project is None and self.project_id is None and self.issue is not None:
            self.project = self.issue.project

    def editable_by(self, user):
        """Own entries need edit_own_time_entries; others edit_time_entries."""
        own = user is not None and self.user_id is not None and user.id == self.user_id
        if own and user.allowed_to("edit_own_time_entries", self.project):
            return True
        return user.allowed_to("edit_time_entries", self.project)

    # --- Validation ---

    def validate(self):
        self.set_default_project()
        self.recompute_derived_fields()
        return super().validate()

    def _validate(self):
        from app.models.issue import Issue

        if self.user is None and self.user_id is None:
            self.add_error("user_id", "blank")
        if self.activity is None and self.activity_id is None:
            self.add_error("activity_id", "blank")
        if self.spent_on is None:
            self.add_error("spent_on", "blank")

        hours = self.hours
        if hours is None or hours == "":
            self.add_error("hours", "blank")
        elif isinstance(hours, bool) or not isinstance(hours, (int, float)):
            self.add_error("hours", "invalid")
        elif not math.isfinite(hours) or not 0 <= hours < MAX_HOURS:
            self.add_error("hours", "invalid")

        if self.comments is not None and len(self.comments) > 255:
            self.add_error("comments", "too_long")

        project = self.project
        if project is None and self.project_id is not None:
            from app.models.project import Project

            project = db.session.get(Project, self.project_id)
        if project is None:
            self.add_error("project_id", "invalid")

        issue = self.issue
        if issue is None and self.issue_id is not None:
            issue = db.session.get(Issue, self.issue_id)
            if issue is None:
                self.add_error("issue_id", "invalid")
        if issue is not None and project is not None:
            issue_project_id = issue.project.id if issue.project is not None else issue.project_id
            if issue_project_id != project.id:
                self.add_error("issue_id", "invalid")

    def __repr__(self):
        return f"<TimeEntry {self.hours}h on {self.spent_on}>"


@event.listens_for(TimeEntry, "before_insert")
@event.listens_for(TimeEntry, "before_update")
def _recompute_time_entry_fields(mapper, connection, target):
    target.recompute_derived_fields()
