# Models package — import all models here so Alembic can discover them.

from app.models.principal import Principal  # noqa: F401
from app.models.user import User  # noqa: F401
from app.models.group import Group  # noqa: F401
from app.models.project import Project, EnabledModule  # noqa: F401
from app.models.role import Role  # noqa: F401
from app.models.member import Member, MemberRole  # noqa: F401
from app.models.watcher import Watcher  # noqa: F401
from app.models.issue import (  # noqa: F401
    Issue,
    IssueCategory,
    IssuePriority,
    IssueStatus,
    Tracker,
    Version,
)
from app.models.journal import Journal  # noqa: F401
from app.models.wiki import Wiki, WikiContent, WikiPage  # noqa: F401
from app.models.time_entry import TimeEntry, TimeEntryActivity  # noqa: F401
from app.models.token import Token  # noqa: F401
