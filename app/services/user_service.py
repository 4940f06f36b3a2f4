"""User service — registration, login, keys and account removal.

Functions flush but do NOT commit — the caller commits.
"""

import logging
from datetime import datetime, timezone

from flask import current_app

from app.extensions import db
from app.models.issue import Issue, IssueCategory
from app.models.journal import Journal
from app.models.member import Member
from app.models.principal import Principal
from app.models.time_entry import TimeEntry
from app.models.token import Token
from app.models.user import USER_DELETION_JOURNAL_BUCKET_SIZE, User
from app.models.watcher import Watcher
from app.models.wiki import WikiContent

logger = logging.getLogger(__name__)

# Keys in Journal.changed_data holding user ids
JOURNAL_USER_KEYS = ("author_id", "user_id", "assigned_to_id")


def register_user(login, password, firstname, lastname, mail, **attrs):
    """Create a new, active user.

    Returns:
        The created User.

    Raises:
        ValueError: If the user does not validate. The message lists the
            failing fields.
    """
    user = User(
        login=(login or "").strip(),
        firstname=firstname,
        lastname=lastname,
        mail=mail,
        password=password,
        status=User.STATUS_ACTIVE,
        **attrs,
    )
    if not user.save():
        raise ValueError(f"Invalid user: {_format_errors(user.errors)}")
    logger.info(f"Registered user {user.login}")
    return user


def _format_errors(errors):
    return "; ".join(
        f"{field} {', '.join(messages)}" for field, messages in errors.items()
    )


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

def try_to_login(login, password):
    """Return the active user matching the credentials, else None.

    Stamps ``last_login_on`` on success.
    """
    # Make sure no one can sign in with an empty password
    if not password:
        return None
    user = User.find_by_login(login)
    if user is None or user.builtin:
        return None
    if not user.active or not user.check_password(password):
        logger.info(f"Failed login for {login!r}")
        return None
    user.last_login_on = datetime.now(timezone.utc)
    db.session.flush()
    return user


def try_to_autologin(token_value):
    """Return the active user owning a fresh autologin token, else None."""
    if not token_value:
        return None
    token = Token.query.filter_by(action="autologin", value=token_value).first()
    if token is None or token.user is None:
        return None
    if token.expired(current_app.config.get("AUTOLOGIN_DAYS", 0)):
        return None
    user = token.user
    if not user.active:
        return None
    user.last_login_on = datetime.now(timezone.utc)
    db.session.flush()
    return user


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------

def _find_by_token(action, key):
    if not key:
        return None
    token = Token.query.filter_by(action=action, value=key).first()
    if token is None or token.user is None or not token.user.active:
        return None
    return token.user


def find_by_api_key(key):
    return _find_by_token("api", key)


def find_by_rss_key(key):
    return _find_by_token("feeds", key)


def _key_for(user, action):
    token = Token.query.filter_by(user_id=user.id, action=action).first()
    if token is None:
        token = Token(user=user, action=action)
        db.session.add(token)
        db.session.flush()
    return token.value


def api_key(user):
    """The user's API key, created on first use."""
    return _key_for(user, "api")


def rss_key(user):
    """The user's feeds key, created on first use."""
    return _key_for(user, "feeds")


def autologin_token(user):
    """Create a fresh autologin token and return its value."""
    token = Token(user=user, action="autologin")
    db.session.add(token)
    db.session.flush()
    return token.value


# ---------------------------------------------------------------------------
# Removal
# ---------------------------------------------------------------------------

def destroy_user(user):
    """Delete ``user``, handing their content over to the deleted user.

    Authored issues, wiki contents, journals and time entries are
    reassigned; ids inside journal change data are rewritten; memberships,
    watches and tokens are removed and assigned issues unassigned.

    Raises:
        ValueError: If the user is a sentinel.
    """
    if not user.destroyable:
        raise ValueError(f"The {user.kind} user cannot be deleted.")

    substitute = User.deleted()
    old_id = user.id

    Issue.query.filter_by(author_id=old_id).update(
        {"author_id": substitute.id}, synchronize_session=False
    )
    Issue.query.filter_by(assigned_to_id=old_id).update(
        {"assigned_to_id": None}, synchronize_session=False
    )
    IssueCategory.query.filter_by(assigned_to_id=old_id).update(
        {"assigned_to_id": None}, synchronize_session=False
    )
    WikiContent.query.filter_by(author_id=old_id).update(
        {"author_id": substitute.id}, synchronize_session=False
    )
    TimeEntry.query.filter_by(user_id=old_id).update(
        {"user_id": substitute.id}, synchronize_session=False
    )
    Journal.query.filter_by(user_id=old_id).update(
        {"user_id": substitute.id}, synchronize_session=False
    )
    rewritten = _rewrite_journal_changes(old_id, substitute.id)

    Watcher.query.filter_by(user_id=old_id).delete(synchronize_session=False)
    for membership in Member.query.filter_by(principal_id=old_id).all():
        db.session.delete(membership)
    db.session.flush()

    db.session.expire_all()
    db.session.delete(db.session.get(Principal, old_id))
    db.session.flush()

    logger.info(
        f"Destroyed user {old_id}; {rewritten} journal(s) rewritten"
    )


def _rewrite_journal_changes(old_id, new_id):
    """Replace ``old_id`` inside journal change data, one bucket at a time."""
    rewritten = 0
    last_id = 0
    while True:
        bucket = (
            Journal.query
            .filter(Journal.id > last_id)
            .order_by(Journal.id)
            .limit(USER_DELETION_JOURNAL_BUCKET_SIZE)
            .all()
        )
        if not bucket:
            break
        for journal in bucket:
            changes = _replace_user_id(journal.changed_data or {}, old_id, new_id)
            if changes is not None:
                # Reassign so SQLAlchemy sees the JSON change
                journal.changed_data = changes
                rewritten += 1
        db.session.flush()
        last_id = bucket[-1].id
    return rewritten


def _replace_user_id(changed_data, old_id, new_id):
    """Rewritten copy of ``changed_data``, or None when nothing matched."""
    result = {}
    changed = False
    for key, values in changed_data.items():
        if key in JOURNAL_USER_KEYS and isinstance(values, list):
            replaced = [new_id if v == old_id else v for v in values]
            changed = changed or replaced != values
            result[key] = replaced
        else:
            result[key] = values
    return result if changed else None


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------

def force_user_language():
    """Reset languages missing from AVAILABLE_LANGUAGES to the default.

    Returns:
        Number of users updated.
    """
    available = current_app.config.get("AVAILABLE_LANGUAGES", [])
    default = current_app.config.get("DEFAULT_LANGUAGE", "en")
    users = User.query.filter(
        db.or_(User.language.is_(None), ~User.language.in_(available))
    ).all()
    for user in users:
        user.language = default
    db.session.flush()
    logger.info(f"Forced language '{default}' on {len(users)} user(s)")
    return len(users)
