"""Tests for mail notifications.

send_email is replaced by a recorder so no thread or SMTP is involved.

Covers:
- issue_added / issue_updated recipients (members, author, watchers)
- NOTIFIED_EVENTS filtering
- wiki_content_added / wiki_content_updated, text changes only
- issue_service and wiki_service integration
"""

from unittest.mock import patch

import pytest

from app.extensions import db
from app.models.journal import Journal
from app.services import issue_service, notification_service, wiki_service
from tests.conftest import make_issue


@pytest.fixture
def outbox():
    """Collect every mail the notification service sends."""
    sent = []
    with patch("app.services.notification_service.send_email") as mock_send:
        mock_send.side_effect = lambda **kwargs: sent.append(kwargs)
        yield sent


def _to(outbox):
    return sorted(m["to"] for m in outbox)


class TestIssueAdded:
    def test_members_and_author(self, seed_data, outbox):
        issue_service.create_issue(
            seed_data["ecookbook"], seed_data["dlopper"], seed_data["tracker"], "Oven overheats"
        )
        # jsmith's membership asks for mails; dlopper is the author
        assert _to(outbox) == ["dlopper@example.net", "jsmith@example.net"]
        assert all(m["template"] == "emails/issue_added.html" for m in outbox)
        assert "Oven overheats" in outbox[0]["subject"]

    def test_context_carries_user(self, seed_data, outbox):
        issue = make_issue(
            seed_data["ecookbook"], seed_data["jsmith"], seed_data["tracker"], seed_data["new"]
        )
        users = notification_service.issue_added(issue)
        assert users == [seed_data["jsmith"]]
        assert outbox[0]["context"]["user"] == seed_data["jsmith"]
        assert outbox[0]["context"]["issue"] == issue

    def test_watchers_without_duplicates(self, seed_data, outbox):
        jsmith, dlopper = seed_data["jsmith"], seed_data["dlopper"]
        issue = make_issue(seed_data["ecookbook"], jsmith, seed_data["tracker"], seed_data["new"])
        issue.add_watcher(jsmith)
        issue.add_watcher(dlopper)

        notification_service.issue_added(issue)
        assert _to(outbox) == ["dlopper@example.net", "jsmith@example.net"]

    def test_opted_out_user_skipped(self, seed_data, outbox):
        seed_data["jsmith"].mail_notification = "none"
        issue_service.create_issue(
            seed_data["ecookbook"], seed_data["dlopper"], seed_data["tracker"], "Oven overheats"
        )
        assert _to(outbox) == ["dlopper@example.net"]

    def test_locked_user_skipped(self, seed_data, outbox):
        seed_data["jsmith"].lock()
        issue_service.create_issue(
            seed_data["ecookbook"], seed_data["dlopper"], seed_data["tracker"], "Oven overheats"
        )
        assert _to(outbox) == ["dlopper@example.net"]

    def test_event_disabled(self, app, seed_data, outbox, monkeypatch):
        monkeypatch.setitem(app.config, "NOTIFIED_EVENTS", ["issue_updated"])
        issue_service.create_issue(
            seed_data["ecookbook"], seed_data["dlopper"], seed_data["tracker"], "Oven overheats"
        )
        assert outbox == []


class TestIssueUpdated:
    def test_status_change(self, seed_data, outbox):
        issue = make_issue(
            seed_data["ecookbook"], seed_data["jsmith"], seed_data["tracker"], seed_data["new"]
        )
        journal = issue_service.update_issue(
            issue, seed_data["dlopper"], notes="Fixed", status_id=seed_data["closed"].id
        )
        assert journal.changed_data == {
            "status_id": [seed_data["new"].id, seed_data["closed"].id]
        }
        assert journal.version == 1
        # dlopper is neither author nor assignee
        assert _to(outbox) == ["jsmith@example.net"]
        assert outbox[0]["template"] == "emails/issue_updated.html"
        assert outbox[0]["context"]["journal"] == journal

    def test_assignee_notified(self, seed_data, outbox):
        issue = make_issue(
            seed_data["ecookbook"], seed_data["jsmith"], seed_data["tracker"], seed_data["new"]
        )
        issue_service.update_issue(
            issue, seed_data["jsmith"], assigned_to_id=seed_data["dlopper"].id
        )
        assert _to(outbox) == ["dlopper@example.net", "jsmith@example.net"]

    def test_nothing_changed(self, seed_data, outbox):
        issue = make_issue(
            seed_data["ecookbook"], seed_data["jsmith"], seed_data["tracker"], seed_data["new"]
        )
        assert issue_service.update_issue(issue, seed_data["jsmith"], subject=issue.subject) is None
        assert outbox == []

    def test_journal_versions_increase(self, seed_data, outbox):
        issue = make_issue(
            seed_data["ecookbook"], seed_data["jsmith"], seed_data["tracker"], seed_data["new"]
        )
        issue_service.update_issue(issue, seed_data["jsmith"], notes="First")
        second = issue_service.update_issue(issue, seed_data["jsmith"], notes="Second")
        assert second.version == 2

    def test_missing_issue(self, seed_data, outbox):
        journal = Journal(journaled_type="Issue", journaled_id="missing", version=1)
        assert notification_service.issue_updated(journal) == []
        assert outbox == []

    def test_notes_only_permission(self, seed_data, outbox):
        issue = make_issue(
            seed_data["ecookbook"], seed_data["jsmith"], seed_data["tracker"], seed_data["new"]
        )
        with pytest.raises(PermissionError):
            issue_service.update_issue(issue, seed_data["rhill"], notes="Me too")
        with pytest.raises(ValueError):
            issue_service.update_issue(issue, seed_data["jsmith"], author_id="x")


class TestWikiNotifications:
    def test_page_added(self, seed_data, outbox):
        content = wiki_service.save_page(
            seed_data["ecookbook"], "Recipes", "h1. Recipes", seed_data["jsmith"]
        )
        assert content.version == 1
        assert _to(outbox) == ["jsmith@example.net"]
        assert outbox[0]["template"] == "emails/wiki_content_added.html"
        assert "Recipes" in outbox[0]["subject"]

    def test_wiki_watchers_notified_on_add(self, seed_data, outbox):
        wiki_service.save_page(seed_data["ecookbook"], "Recipes", "v1", seed_data["jsmith"])
        seed_data["ecookbook"].wiki.add_watcher(seed_data["dlopper"])
        outbox.clear()

        wiki_service.save_page(seed_data["ecookbook"], "Tips", "v1", seed_data["jsmith"])
        assert _to(outbox) == ["dlopper@example.net", "jsmith@example.net"]

    def test_update_notifies_page_watchers(self, seed_data, outbox):
        content = wiki_service.save_page(
            seed_data["ecookbook"], "Recipes", "v1", seed_data["jsmith"]
        )
        content.page.add_watcher(seed_data["dlopper"])
        outbox.clear()

        content = wiki_service.save_page(
            seed_data["ecookbook"], "recipes", "v2", seed_data["jsmith"]
        )
        assert content.version == 2
        assert _to(outbox) == ["dlopper@example.net", "jsmith@example.net"]
        assert outbox[0]["template"] == "emails/wiki_content_updated.html"

    def test_unchanged_text_not_notified(self, seed_data, outbox):
        wiki_service.save_page(seed_data["ecookbook"], "Recipes", "v1", seed_data["jsmith"])
        outbox.clear()

        content = wiki_service.save_page(
            seed_data["ecookbook"], "Recipes", "v1", seed_data["jsmith"], comments="typo"
        )
        assert content.version == 1
        assert outbox == []

    def test_save_page_requires_permission(self, seed_data, outbox):
        with pytest.raises(PermissionError):
            wiki_service.save_page(seed_data["ecookbook"], "Recipes", "v1", seed_data["rhill"])
        with pytest.raises(ValueError):
            wiki_service.save_page(seed_data["ecookbook"], "  ", "v1", seed_data["jsmith"])
