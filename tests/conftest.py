"""Shared test fixtures for the tracker test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, CSRF off)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- seed_data: roles, enumerations, users, a group and projects
- use_evaluators: swap the app's permission resolver for one test
"""

from datetime import date

import pytest

from app import create_app
from app.extensions import db as _db
from app.models.group import Group
from app.models.issue import Issue, IssuePriority, IssueStatus, Tracker
from app.models.member import Member
from app.models.project import Project
from app.models.role import Role
from app.models.time_entry import TimeEntryActivity
from app.models.user import User
from app.services.allowance_service import EXTENSION_KEY, PermissionResolver

ALL_MODULES = ["issue_tracking", "time_tracking", "wiki", "news", "boards", "repository"]


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def use_evaluators(app, monkeypatch):
    """Install a resolver built from the given evaluator classes."""

    def install(*evaluators):
        monkeypatch.setitem(
            app.extensions, EXTENSION_KEY, PermissionResolver(evaluators)
        )

    return install


# ─── Builders ──────────────────────────────────────────────

def make_user(login, admin=False, status=User.STATUS_ACTIVE, **kwargs):
    defaults = {
        "firstname": login.capitalize(),
        "lastname": "Tester",
        "mail": f"{login}@example.net",
        "password": "secret123",
        "mail_notification": "only_my_events",
    }
    defaults.update(kwargs)
    user = User(login=login, admin=admin, status=status, **defaults)
    assert user.save(), user.errors
    return user


def make_project(identifier, is_public=True, modules=None, parent=None):
    project = Project(
        name=identifier.replace("-", " ").title(),
        identifier=identifier,
        is_public=is_public,
        status=Project.STATUS_ACTIVE,
        parent=parent,
    )
    project.enabled_module_names = ALL_MODULES if modules is None else modules
    assert project.save(), project.errors
    return project


def add_member(principal, project, *roles, mail_notification=False):
    member = Member(principal=principal, project=project, mail_notification=mail_notification)
    member.roles = list(roles)
    _db.session.add(member)
    _db.session.flush()
    return member


def make_issue(project, author, tracker, status, subject="Something broke", **kwargs):
    issue = Issue(
        project=project,
        author=author,
        tracker=tracker,
        status=status,
        subject=subject,
        **kwargs,
    )
    assert issue.save(), issue.errors
    return issue


@pytest.fixture
def seed_data(app, db_session):
    """Seed roles, enumerations, users, a group and three projects.

    - ecookbook: public, all modules; jsmith is Manager, dlopper Developer
    - private-child: private subproject of ecookbook; dlopper Developer
    - onlinestore: private, issue_tracking only; the "Devs" group is
      Developer (dlopper belongs to the group)
    - rhill has no membership anywhere; admin is an administrator
    """
    manager = Role(name="Manager", position=1)
    manager.add_permission(
        "edit_project", "manage_members", "view_issues", "add_issues",
        "edit_issues", "add_issue_notes", "view_issue_watchers",
        "add_issue_watchers", "delete_issue_watchers", "log_time",
        "view_time_entries", "edit_time_entries", "edit_own_time_entries",
        "view_wiki_pages", "edit_wiki_pages",
    )
    developer = Role(name="Developer", position=2)
    developer.add_permission(
        "view_issues", "add_issues", "edit_issues", "add_issue_notes",
        "view_issue_watchers", "log_time", "view_time_entries",
        "edit_own_time_entries", "view_wiki_pages", "edit_wiki_pages",
    )
    _db.session.add_all([manager, developer])
    _db.session.flush()

    non_member = Role.non_member()
    non_member.add_permission("view_issues", "add_issues", "view_time_entries", "view_wiki_pages")
    anonymous_role = Role.anonymous()
    anonymous_role.add_permission("view_issues", "view_wiki_pages")

    tracker = Tracker(name="Bug", position=1)
    feature = Tracker(name="Feature", position=2)
    new = IssueStatus(name="New", is_default=True, position=1)
    closed = IssueStatus(name="Closed", is_closed=True, position=2)
    normal = IssuePriority(name="Normal", is_default=True, position=1)
    design = TimeEntryActivity(name="Design", position=1)
    development = TimeEntryActivity(name="Development", position=2, is_default=True)
    _db.session.add_all([tracker, feature, new, closed, normal, design, development])
    _db.session.flush()

    admin = make_user("admin", admin=True)
    jsmith = make_user("jsmith", firstname="John", lastname="Smith")
    dlopper = make_user("dlopper", firstname="Dave", lastname="Lopper")
    rhill = make_user("rhill", firstname="Robert", lastname="Hill")

    devs = Group(name="Devs")
    devs.add_user(dlopper)
    assert devs.save(), devs.errors

    ecookbook = make_project("ecookbook")
    private_child = make_project("private-child", is_public=False, parent=ecookbook)
    onlinestore = make_project("onlinestore", is_public=False, modules=["issue_tracking"])

    add_member(jsmith, ecookbook, manager, mail_notification=True)
    add_member(dlopper, ecookbook, developer)
    add_member(dlopper, private_child, developer)
    add_member(devs, onlinestore, developer)

    anonymous = User.anonymous()
    _db.session.commit()

    return {
        "manager": manager,
        "developer": developer,
        "non_member": non_member,
        "anonymous_role": anonymous_role,
        "tracker": tracker,
        "feature": feature,
        "new": new,
        "closed": closed,
        "normal": normal,
        "design": design,
        "development": development,
        "admin": admin,
        "jsmith": jsmith,
        "dlopper": dlopper,
        "rhill": rhill,
        "anonymous": anonymous,
        "devs": devs,
        "ecookbook": ecookbook,
        "private_child": private_child,
        "onlinestore": onlinestore,
        "today": date(2026, 3, 12),
    }
