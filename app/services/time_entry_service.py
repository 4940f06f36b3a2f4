"""Time entry service — logging, editing and reporting spent time.

Comments are sanitized with bleach.clean() to strip HTML tags. Who may log
or edit time follows the log_time / edit_time_entries /
edit_own_time_entries permissions.

Functions flush but do NOT commit — the caller commits.
"""

import logging
from datetime import date

import bleach
from sqlalchemy import func

from app.extensions import db
from app.models.issue import Issue
from app.models.project import Project
from app.models.time_entry import TimeEntry, parse_hours

logger = logging.getLogger(__name__)

# criterion name -> TimeEntry column
CRITERIA = {
    "project": TimeEntry.project_id,
    "issue": TimeEntry.issue_id,
    "user": TimeEntry.user_id,
    "activity": TimeEntry.activity_id,
}

# period name -> columns identifying a period
COLUMNS = {
    "year": (TimeEntry.tyear,),
    "month": (TimeEntry.tyear, TimeEntry.tmonth),
    "week": (TimeEntry.tyear, TimeEntry.tweek),
    "day": (TimeEntry.spent_on,),
}


def _sanitize(text):
    """Strip all HTML tags from user input."""
    if text is None:
        return text
    return bleach.clean(text, tags=[], strip=True).strip()


def _parse_date(value):
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        return value


class TimeEntryError(ValueError):
    """Raised when an entry does not validate; carries its errors."""

    def __init__(self, errors):
        self.errors = errors
        super().__init__(
            "; ".join(f"{f} {', '.join(m)}" for f, m in errors.items())
        )


def log_time(user, project=None, issue=None, hours=None, spent_on=None,
             activity_id=None, comments=None):
    """Record time spent by ``user``.

    The project defaults to the issue's project.

    Returns:
        The created TimeEntry.

    Raises:
        PermissionError: If the user may not log time on the project.
        TimeEntryError: If the entry does not validate.
    """
    entry = TimeEntry(
        user=user,
        project=project,
        issue=issue,
        hours=hours,
        spent_on=_parse_date(spent_on),
        comments=_sanitize(comments),
        activity_id=activity_id,
    )
    entry.set_default_project()

    if entry.project is not None and not user.allowed_to("log_time", entry.project):
        if entry in db.session:
            db.session.expunge(entry)
        raise PermissionError("Not allowed to log time on this project.")

    if not entry.save():
        raise TimeEntryError(entry.errors)
    logger.info(
        f"{user.login} logged {entry.hours}h on {entry.project.identifier}"
    )
    return entry


def update_entry(entry, user, **attrs):
    """Change an existing entry as ``user``.

    Accepts hours, spent_on, comments, activity_id and issue_id.

    Raises:
        PermissionError: If the user may not edit the entry.
        TimeEntryError: If the entry no longer validates.
    """
    if not entry.editable_by(user):
        raise PermissionError("Not allowed to edit this time entry.")

    if "hours" in attrs:
        entry.hours = parse_hours(attrs["hours"])
    if "spent_on" in attrs:
        entry.spent_on = _parse_date(attrs["spent_on"])
    if "comments" in attrs:
        entry.comments = _sanitize(attrs["comments"])
    if "activity_id" in attrs:
        entry.activity_id = attrs["activity_id"]
    if "issue_id" in attrs:
        entry.issue_id = attrs["issue_id"]
        entry.issue = (
            db.session.get(Issue, attrs["issue_id"]) if attrs["issue_id"] else None
        )

    if not entry.save():
        raise TimeEntryError(entry.errors)
    return entry


def visible_entries(user, project=None):
    """Entries ``user`` may see, optionally limited to ``project`` and its
    subprojects."""
    query = TimeEntry.query.join(Project, TimeEntry.project_id == Project.id).filter(
        Project.allowed_to_condition(user, "view_time_entries")
    )
    if project is not None:
        query = query.filter(
            TimeEntry.project_id.in_([p.id for p in project.hierarchy()])
        )
    return query


def earliest_date_for_project(user, project=None):
    return visible_entries(user, project).with_entities(
        func.min(TimeEntry.spent_on)
    ).scalar()


def latest_date_for_project(user, project=None):
    return visible_entries(user, project).with_entities(
        func.max(TimeEntry.spent_on)
    ).scalar()


def total_hours(user, project=None, criteria=None, columns="month",
                date_from=None, date_to=None):
    """Sum visible hours grouped by ``criteria`` and period ``columns``.

    Args:
        criteria: Names from CRITERIA, in grouping order.
        columns: One of COLUMNS.
        date_from, date_to: Optional inclusive bounds on spent_on.

    Returns:
        dict with keys:
            criteria – the criteria used
            columns  – the period granularity
            periods  – sorted list of period keys
            rows     – list of dicts: one key per criterion, "period",
                       "hours"
            total    – sum of all hours

    Raises:
        ValueError: If a criterion or the columns value is unknown.
    """
    criteria = list(criteria or [])
    unknown = [c for c in criteria if c not in CRITERIA]
    if unknown:
        raise ValueError(f"Unknown criteria: {', '.join(unknown)}")
    if columns not in COLUMNS:
        raise ValueError(
            f"Invalid columns '{columns}'. Must be one of: {', '.join(COLUMNS)}"
        )

    group_columns = [CRITERIA[c] for c in criteria] + list(COLUMNS[columns])
    query = visible_entries(user, project)
    if date_from is not None:
        query = query.filter(TimeEntry.spent_on >= _parse_date(date_from))
    if date_to is not None:
        query = query.filter(TimeEntry.spent_on <= _parse_date(date_to))
    results = (
        query
        .with_entities(*group_columns, func.sum(TimeEntry.hours))
        .group_by(*group_columns)
        .all()
    )

    rows = []
    periods = set()
    total = 0.0
    for result in results:
        values = list(result)
        hours = float(values.pop() or 0)
        row = {name: values[i] for i, name in enumerate(criteria)}
        period = _period_key(columns, values[len(criteria):])
        row["period"] = period
        row["hours"] = hours
        rows.append(row)
        periods.add(period)
        total += hours

    return {
        "criteria": criteria,
        "columns": columns,
        "periods": sorted(periods),
        "rows": rows,
        "total": total,
    }


def _period_key(columns, values):
    if columns == "year":
        return str(values[0])
    if columns == "month":
        return f"{values[0]}-{values[1]:02d}"
    if columns == "week":
        return f"{values[0]}-W{values[1]:02d}"
    day = values[0]
    return day.isoformat() if isinstance(day, date) else str(day)
