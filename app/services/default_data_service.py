"""Default data — roles, trackers, statuses, priorities and activities.

Loaded once into an empty database by ``flask load-default-data``.

Functions flush but do NOT commit — the caller commits.
"""

import logging

from app import access_control
from app.extensions import db
from app.models.issue import IssuePriority, IssueStatus, Tracker
from app.models.role import Role
from app.models.time_entry import TimeEntryActivity
from app.models.user import User

logger = logging.getLogger(__name__)

DEVELOPER_PERMISSIONS = [
    "manage_versions",
    "manage_categories",
    "view_issues",
    "add_issues",
    "edit_issues",
    "manage_issue_relations",
    "add_issue_notes",
    "view_issue_watchers",
    "add_issue_watchers",
    "log_time",
    "view_time_entries",
    "edit_own_time_entries",
    "view_news",
    "comment_news",
    "view_messages",
    "add_messages",
    "view_wiki_pages",
    "view_wiki_edits",
    "edit_wiki_pages",
    "browse_repository",
    "commit_access",
]

REPORTER_PERMISSIONS = [
    "view_issues",
    "add_issues",
    "add_issue_notes",
    "view_issue_watchers",
    "log_time",
    "view_time_entries",
    "view_news",
    "comment_news",
    "view_messages",
    "add_messages",
    "view_wiki_pages",
    "view_wiki_edits",
    "browse_repository",
]

BUILTIN_PERMISSIONS = [
    "view_issues",
    "view_time_entries",
    "view_news",
    "view_messages",
    "view_wiki_pages",
    "view_wiki_edits",
    "browse_repository",
]

TRACKERS = ["Bug", "Feature", "Support"]

# (name, is_closed, is_default)
STATUSES = [
    ("New", False, True),
    ("In Progress", False, False),
    ("Resolved", False, False),
    ("Feedback", False, False),
    ("Closed", True, False),
    ("Rejected", True, False),
]

PRIORITIES = ["Low", "Normal", "High", "Urgent", "Immediate"]
DEFAULT_PRIORITY = "Normal"

ACTIVITIES = ["Design", "Development"]
DEFAULT_ACTIVITY = "Development"


def is_loaded():
    """True when any of the configurable data already exists."""
    return any(
        model.query.first() is not None
        for model in (Tracker, IssueStatus, IssuePriority, TimeEntryActivity)
    ) or Role.query.filter_by(builtin=Role.BUILTIN_NONE).first() is not None


def load_default_data():
    """Create the default configuration.

    Raises:
        ValueError: If the database already holds configuration data.
    """
    if is_loaded():
        raise ValueError("Default data is already loaded.")

    manager = Role(name="Manager", position=1)
    manager.add_permission(*[p.name for p in access_control.permissions() if not p.public])
    developer = Role(name="Developer", position=2)
    developer.add_permission(*DEVELOPER_PERMISSIONS)
    reporter = Role(name="Reporter", position=3)
    reporter.add_permission(*REPORTER_PERMISSIONS)
    db.session.add_all([manager, developer, reporter])

    Role.non_member().add_permission(*BUILTIN_PERMISSIONS)
    Role.non_member().add_permission("add_issues", "add_issue_notes", "comment_news", "add_messages")
    Role.anonymous().add_permission(*BUILTIN_PERMISSIONS)

    for position, name in enumerate(TRACKERS, start=1):
        db.session.add(Tracker(name=name, position=position))
    for position, (name, is_closed, is_default) in enumerate(STATUSES, start=1):
        db.session.add(IssueStatus(
            name=name, is_closed=is_closed, is_default=is_default, position=position,
        ))
    for position, name in enumerate(PRIORITIES, start=1):
        db.session.add(IssuePriority(
            name=name, position=position, is_default=name == DEFAULT_PRIORITY,
        ))
    for position, name in enumerate(ACTIVITIES, start=1):
        db.session.add(TimeEntryActivity(
            name=name, position=position, is_default=name == DEFAULT_ACTIVITY,
        ))
    db.session.flush()

    # Sentinels commit on creation
    User.anonymous()
    User.deleted()

    logger.info("Default data loaded")
