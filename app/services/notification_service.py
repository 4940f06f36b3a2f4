"""Notification service — decides who is mailed about tracker events.

Each hook checks NOTIFIED_EVENTS first, gathers recipient addresses from
the object and its watchers, resolves them to users and sends one mail
per user. Returns the list of notified users.

Functions never commit; they only read.
"""

import logging

from flask import current_app

from app.models.user import User
from app.services.email_service import send_email

logger = logging.getLogger(__name__)


def _event_enabled(event):
    return event in current_app.config.get("NOTIFIED_EVENTS", [])


def _unique(mails):
    seen = []
    for mail in mails:
        if mail and mail.lower() not in [s.lower() for s in seen]:
            seen.append(mail)
    return seen


def _deliver(users, subject, template, context):
    for user in users:
        send_email(
            to=user.mail,
            subject=subject,
            template=template,
            context=dict(context, user=user),
        )
    if users:
        logger.info(f"Notified {len(users)} user(s): {subject}")
    return users


def _issue_subject(issue):
    return f"[{issue.project.name} - {issue.tracker} #{issue.id}] {issue.subject}"


def issue_added(issue):
    """Mail recipients and watchers of a newly created issue."""
    if not _event_enabled("issue_added"):
        return []
    mails = _unique(issue.recipients() + issue.watcher_recipients())
    users = User.find_all_by_mails(mails)
    return _deliver(
        users,
        _issue_subject(issue),
        "emails/issue_added.html",
        {"issue": issue},
    )


def issue_updated(journal):
    """Mail recipients and watchers of the issue ``journal`` records a
    change of."""
    if not _event_enabled("issue_updated"):
        return []
    issue = journal.journaled
    if issue is None:
        return []
    mails = _unique(issue.recipients() + issue.watcher_recipients())
    users = User.find_all_by_mails(mails)
    return _deliver(
        users,
        _issue_subject(issue),
        "emails/issue_updated.html",
        {"issue": issue, "journal": journal},
    )


def wiki_content_added(wiki_content):
    """Mail project recipients and wiki watchers about a new page."""
    if not _event_enabled("wiki_content_added"):
        return []
    page = wiki_content.page
    mails = _unique(wiki_content.recipients() + page.wiki.watcher_recipients())
    users = User.find_all_by_mails(mails)
    return _deliver(
        users,
        f"[{page.project.name}] Wiki page added: {page.title}",
        "emails/wiki_content_added.html",
        {"wiki_content": wiki_content, "page": page},
    )


def wiki_content_updated(wiki_content, text_changed=True):
    """Mail project recipients, wiki and page watchers about an edit.

    Nothing is sent when the text did not change.
    """
    if not text_changed or not _event_enabled("wiki_content_updated"):
        return []
    page = wiki_content.page
    mails = _unique(
        wiki_content.recipients()
        + page.wiki.watcher_recipients()
        + page.watcher_recipients()
    )
    users = User.find_all_by_mails(mails)
    return _deliver(
        users,
        f"[{page.project.name}] Wiki page updated: {page.title}",
        "emails/wiki_content_updated.html",
        {"wiki_content": wiki_content, "page": page},
    )
