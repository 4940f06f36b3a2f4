"""Issue report service — issue counts per status for a project.

Each ``by_*`` function groups the project's issues (subprojects included)
by one field and status and returns rows of
``{"status_id", "closed", "<field>", "total"}``. ``report_details`` adds
the field's possible values so a table can list zero rows too.
"""

import logging

from sqlalchemy import func

from app.extensions import db
from app.models.issue import (
    Issue,
    IssueCategory,
    IssuePriority,
    IssueStatus,
    Tracker,
    Version,
)
from app.models.project import Project

logger = logging.getLogger(__name__)


def _count_by(project, column, field):
    ids = [p.id for p in project.hierarchy() if p.active]
    rows = (
        db.session.query(
            Issue.status_id,
            IssueStatus.is_closed,
            column,
            func.count(Issue.id),
        )
        .join(IssueStatus, Issue.status_id == IssueStatus.id)
        .filter(Issue.project_id.in_(ids))
        .group_by(Issue.status_id, IssueStatus.is_closed, column)
        .all()
    )
    return [
        {"status_id": status_id, "closed": bool(closed), field: value, "total": total}
        for status_id, closed, value, total in rows
    ]


def by_tracker(project):
    return _count_by(project, Issue.tracker_id, "tracker_id")


def by_version(project):
    return _count_by(project, Issue.fixed_version_id, "fixed_version_id")


def by_priority(project):
    return _count_by(project, Issue.priority_id, "priority_id")


def by_category(project):
    return _count_by(project, Issue.category_id, "category_id")


def by_assigned_to(project):
    return _count_by(project, Issue.assigned_to_id, "assigned_to_id")


def by_author(project):
    return _count_by(project, Issue.author_id, "author_id")


def by_subproject(project):
    """Counts per direct-or-nested subproject; the project itself is left
    out."""
    rows = _count_by(project, Issue.project_id, "project_id")
    return [r for r in rows if r["project_id"] != project.id]


# detail name -> (field, counting function, possible values)
DETAILS = {
    "tracker": ("tracker_id", by_tracker, lambda p: Tracker.query.order_by(Tracker.position).all()),
    "version": ("fixed_version_id", by_version, lambda p: Version.shared_with(p)),
    "priority": (
        "priority_id",
        by_priority,
        lambda p: IssuePriority.query.filter_by(active=True).order_by(IssuePriority.position).all(),
    ),
    "category": ("category_id", by_category, lambda p: list(p.issue_categories)),
    "assigned_to": ("assigned_to_id", by_assigned_to, lambda p: p.users()),
    "author": ("author_id", by_author, lambda p: p.users()),
    "subproject": ("project_id", by_subproject, lambda p: _active_descendants(p)),
}


def _active_descendants(project):
    return [p for p in project.descendants() if p.status == Project.STATUS_ACTIVE]


def report(project):
    """All counts for the summary page, keyed by detail name."""
    summary = {name: counter(project) for name, (_, counter, _) in DETAILS.items()}
    summary["statuses"] = IssueStatus.ordered()
    return summary


def report_details(project, detail):
    """Counts for one detail, or None when ``detail`` is unknown.

    Returns:
        dict with keys field, rows (possible values), data (counts) and
        statuses.
    """
    if detail not in DETAILS:
        logger.debug(f"Unknown issue report detail {detail!r}")
        return None
    field, counter, rows = DETAILS[detail]
    return {
        "detail": detail,
        "field": field,
        "rows": rows(project),
        "data": counter(project),
        "statuses": IssueStatus.ordered(),
    }
