"""Issue service — create and update issues, journaling every change.

Subject, description and notes are sanitized with bleach.clean() to strip
HTML tags. Updates record a Journal whose changed_data maps each changed
field to [old, new]; creation and updates notify recipients through
notification_service.

Functions flush but do NOT commit — the caller commits.
"""

import logging

import bleach

from app.extensions import db
from app.models.issue import Issue, IssuePriority, IssueStatus
from app.models.journal import Journal
from app.services import notification_service

logger = logging.getLogger(__name__)

# Fields whose changes are journaled
JOURNALED_FIELDS = (
    "subject",
    "description",
    "tracker_id",
    "status_id",
    "priority_id",
    "category_id",
    "fixed_version_id",
    "assigned_to_id",
    "is_private",
)


def _sanitize(text):
    """Strip all HTML tags from user input."""
    if text is None:
        return text
    return bleach.clean(text, tags=[], strip=True).strip()


class IssueError(ValueError):
    """Raised when an issue does not validate; carries its errors."""

    def __init__(self, errors):
        self.errors = errors
        super().__init__(
            "; ".join(f"{f} {', '.join(m)}" for f, m in errors.items())
        )


def create_issue(project, author, tracker, subject, description=None, **attrs):
    """Create an issue in ``project``.

    Status and priority default to the default enumerations.

    Returns:
        The created Issue.

    Raises:
        PermissionError: If the author may not add issues to the project.
        IssueError: If the issue does not validate.
    """
    if not author.allowed_to("add_issues", project):
        raise PermissionError("Not allowed to add issues to this project.")

    issue = Issue(
        project=project,
        author=author,
        tracker=tracker,
        subject=_sanitize(subject),
        description=_sanitize(description),
        **attrs,
    )
    if issue.status is None and issue.status_id is None:
        issue.status = IssueStatus.default()
    if issue.priority is None and issue.priority_id is None:
        issue.priority = IssuePriority.default()

    if not issue.save():
        raise IssueError(issue.errors)

    logger.info(f"Issue {issue.id} created in {project.identifier}")
    notification_service.issue_added(issue)
    return issue


def update_issue(issue, user, notes=None, **attrs):
    """Change ``issue`` as ``user`` and journal the change.

    Returns:
        The Journal, or None when nothing changed and no notes were given.

    Raises:
        PermissionError: If the user may neither edit the issue nor add
            notes to it.
        IssueError: If the issue no longer validates.
    """
    can_edit = user.allowed_to("edit_issues", issue.project)
    if not can_edit and not user.allowed_to("add_issue_notes", issue.project):
        raise PermissionError("Not allowed to update this issue.")
    if attrs and not can_edit:
        raise PermissionError("Not allowed to edit this issue.")

    changes = {}
    for field, value in attrs.items():
        if field not in JOURNALED_FIELDS:
            raise ValueError(f"Field '{field}' cannot be updated.")
        if field in ("subject", "description"):
            value = _sanitize(value)
        old = getattr(issue, field)
        if old != value:
            changes[field] = [old, value]
            setattr(issue, field, value)

    notes = _sanitize(notes)
    if not changes and not notes:
        return None

    if not issue.save():
        raise IssueError(issue.errors)
    # relationships reload from the changed foreign keys
    db.session.expire(issue)

    journal = Journal(
        journaled_type="Issue",
        journaled_id=issue.id,
        user_id=user.id,
        version=Journal.for_object(issue).count() + 1,
        notes=notes,
        changed_data=changes,
    )
    db.session.add(journal)
    db.session.flush()

    logger.info(f"Issue {issue.id} updated by {user.login}: {', '.join(changes) or 'notes'}")
    notification_service.issue_updated(journal)
    return journal
