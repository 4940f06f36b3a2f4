"""Tests for time tracking.

Covers:
- Hours parsing
- Derived tyear / tmonth / tweek fields
- TimeEntry validation (hours range, project / issue consistency)
- editable_by
- Service: log_time, update_entry, visibility, date bounds, totals
- /projects/<id>/time_entries routes
"""

from datetime import date, datetime

import pytest

from app.extensions import db
from app.models.time_entry import TimeEntry, parse_hours
from app.services import time_entry_service
from app.services.time_entry_service import TimeEntryError
from tests.conftest import make_issue


def _login(client, login, password="secret123"):
    return client.post("/auth/login", json={"login": login, "password": password})


def _entry(seed_data, **kwargs):
    attrs = {
        "project": seed_data["ecookbook"],
        "user": seed_data["jsmith"],
        "hours": 1.5,
        "spent_on": seed_data["today"],
    }
    attrs.update(kwargs)
    return TimeEntry(**attrs)


class TestParseHours:
    @pytest.mark.parametrize("value, expected", [
        (2, 2),
        (1.25, 1.25),
        ("1.5", 1.5),
        ("1,5", 1.5),
        ("3h", 3.0),
        ("1.5h", 1.5),
        ("2:30", 2.5),
        ("2h30", 2.5),
        ("2h 30m", 2.5),
        ("45m", 0.75),
    ])
    def test_parses(self, value, expected):
        assert parse_hours(value) == pytest.approx(expected)

    def test_blank_is_none(self):
        assert parse_hours("  ") is None
        assert parse_hours(None) is None

    def test_garbage_returned_unchanged(self):
        assert parse_hours("lots") == "lots"


class TestDerivedFields:
    def test_computed_on_init(self, seed_data):
        entry = _entry(seed_data, spent_on=date(2026, 3, 12))
        assert (entry.tyear, entry.tmonth, entry.tweek) == (2026, 3, 11)

    def test_iso_week_across_new_year(self, seed_data):
        entry = _entry(seed_data, spent_on=date(2027, 1, 1))
        assert (entry.tyear, entry.tmonth, entry.tweek) == (2027, 1, 53)

    def test_datetime_truncated(self, seed_data):
        entry = _entry(seed_data, spent_on=datetime(2026, 5, 4, 17, 30))
        assert entry.spent_on == date(2026, 5, 4)
        assert entry.tmonth == 5

    def test_no_date_clears_fields(self, seed_data):
        entry = _entry(seed_data, spent_on=None)
        assert (entry.tyear, entry.tmonth, entry.tweek) == (None, None, None)

    def test_recomputed_on_update(self, seed_data):
        entry = _entry(seed_data)
        assert entry.save()
        db.session.commit()

        entry.spent_on = date(2025, 12, 24)
        db.session.commit()
        assert (entry.tyear, entry.tmonth, entry.tweek) == (2025, 12, 52)


class TestValidation:
    def test_valid_entry(self, seed_data):
        entry = _entry(seed_data)
        assert entry.validate(), entry.errors
        assert entry.activity == seed_data["development"]

    @pytest.mark.parametrize("hours", [-1, 1000, 1500, "lots", "nan", float("nan"), float("inf")])
    def test_invalid_hours(self, seed_data, hours):
        entry = _entry(seed_data, hours=hours)
        assert not entry.validate()
        assert entry.errors["hours"] == ["invalid"]

    @pytest.mark.parametrize("hours", [0, 999.99, "999.99"])
    def test_hours_bounds(self, seed_data, hours):
        assert _entry(seed_data, hours=hours).validate()

    def test_missing_hours(self, seed_data):
        entry = _entry(seed_data, hours=None)
        assert not entry.validate()
        assert entry.errors["hours"] == ["blank"]

    def test_missing_fields(self, seed_data):
        entry = TimeEntry(hours=1)
        assert not entry.validate()
        assert entry.errors["user_id"] == ["blank"]
        assert entry.errors["spent_on"] == ["blank"]
        assert entry.errors["project_id"] == ["invalid"]

    def test_project_from_issue(self, seed_data):
        issue = make_issue(
            seed_data["private_child"], seed_data["dlopper"], seed_data["tracker"], seed_data["new"]
        )
        entry = _entry(seed_data, project=None, issue=issue)
        assert entry.validate(), entry.errors
        assert entry.project == seed_data["private_child"]

    def test_issue_from_other_project(self, seed_data):
        issue = make_issue(
            seed_data["onlinestore"], seed_data["dlopper"], seed_data["tracker"], seed_data["new"]
        )
        entry = _entry(seed_data, issue=issue)
        assert not entry.validate()
        assert entry.errors["issue_id"] == ["invalid"]

    def test_unknown_issue_id(self, seed_data):
        entry = _entry(seed_data, issue_id="missing")
        assert not entry.validate()
        assert entry.errors["issue_id"] == ["invalid"]

    def test_comments_too_long(self, seed_data):
        entry = _entry(seed_data, comments="x" * 256)
        assert not entry.validate()
        assert entry.errors["comments"] == ["too_long"]


class TestEditableBy:
    def test_own_entry(self, seed_data):
        entry = _entry(seed_data, user=seed_data["dlopper"])
        assert entry.save()
        assert entry.editable_by(seed_data["dlopper"])

    def test_others_entry_needs_edit_time_entries(self, seed_data):
        entry = _entry(seed_data, user=seed_data["dlopper"])
        assert entry.save()
        assert entry.editable_by(seed_data["jsmith"])  # Manager
        assert not entry.editable_by(seed_data["rhill"])


class TestService:
    def test_log_time(self, seed_data):
        entry = time_entry_service.log_time(
            seed_data["dlopper"], project=seed_data["ecookbook"],
            hours="2:15", spent_on="2026-03-10", comments="<b>Fixed</b> it",
        )
        assert entry.id is not None
        assert entry.hours == pytest.approx(2.25)
        assert entry.comments == "Fixed it"
        assert entry.tweek == 11

    def test_log_time_not_allowed(self, seed_data):
        with pytest.raises(PermissionError):
            time_entry_service.log_time(
                seed_data["rhill"], project=seed_data["ecookbook"],
                hours=1, spent_on=seed_data["today"],
            )

    def test_log_time_invalid(self, seed_data):
        with pytest.raises(TimeEntryError) as exc:
            time_entry_service.log_time(
                seed_data["jsmith"], project=seed_data["ecookbook"],
                hours=1000, spent_on=seed_data["today"],
            )
        assert exc.value.errors["hours"] == ["invalid"]

    def test_log_time_on_issue(self, seed_data):
        issue = make_issue(
            seed_data["ecookbook"], seed_data["jsmith"], seed_data["tracker"], seed_data["new"]
        )
        entry = time_entry_service.log_time(
            seed_data["jsmith"], issue=issue, hours=1, spent_on=seed_data["today"],
            activity_id=seed_data["design"].id,
        )
        assert entry.project == seed_data["ecookbook"]
        assert entry.activity_id == seed_data["design"].id
        assert issue.time_entries.count() == 1

    def test_update_entry(self, seed_data):
        entry = time_entry_service.log_time(
            seed_data["dlopper"], project=seed_data["ecookbook"], hours=1,
            spent_on=seed_data["today"],
        )
        time_entry_service.update_entry(
            entry, seed_data["dlopper"], hours="3", spent_on="2026-01-02",
        )
        assert entry.hours == 3.0
        assert (entry.tyear, entry.tmonth) == (2026, 1)

    def test_update_entry_not_allowed(self, seed_data):
        entry = time_entry_service.log_time(
            seed_data["dlopper"], project=seed_data["ecookbook"], hours=1,
            spent_on=seed_data["today"],
        )
        with pytest.raises(PermissionError):
            time_entry_service.update_entry(entry, seed_data["rhill"], hours=2)

    def test_update_entry_invalid(self, seed_data):
        entry = time_entry_service.log_time(
            seed_data["jsmith"], project=seed_data["ecookbook"], hours=1,
            spent_on=seed_data["today"],
        )
        with pytest.raises(TimeEntryError):
            time_entry_service.update_entry(entry, seed_data["jsmith"], hours=-3)

    def _log_many(self, seed_data):
        jsmith, dlopper = seed_data["jsmith"], seed_data["dlopper"]
        ecookbook, child = seed_data["ecookbook"], seed_data["private_child"]
        for user, project, hours, day in [
            (jsmith, ecookbook, 2, date(2026, 1, 5)),
            (jsmith, ecookbook, 3, date(2026, 2, 10)),
            (dlopper, ecookbook, 4, date(2026, 2, 11)),
            (dlopper, child, 5, date(2026, 3, 1)),
        ]:
            entry = TimeEntry(project=project, user=user, hours=hours, spent_on=day)
            assert entry.save(), entry.errors
        db.session.flush()

    def test_visible_entries(self, seed_data):
        self._log_many(seed_data)
        ecookbook = seed_data["ecookbook"]
        assert time_entry_service.visible_entries(seed_data["dlopper"], ecookbook).count() == 4
        # the private subproject is hidden from non-members
        assert time_entry_service.visible_entries(seed_data["rhill"], ecookbook).count() == 3
        assert time_entry_service.visible_entries(seed_data["rhill"]).count() == 3

    def test_date_bounds(self, seed_data):
        self._log_many(seed_data)
        user, project = seed_data["dlopper"], seed_data["ecookbook"]
        assert time_entry_service.earliest_date_for_project(user, project) == date(2026, 1, 5)
        assert time_entry_service.latest_date_for_project(user, project) == date(2026, 3, 1)
        assert time_entry_service.latest_date_for_project(seed_data["rhill"], project) == date(2026, 2, 11)

    def test_total_hours_by_user_and_month(self, seed_data):
        self._log_many(seed_data)
        dlopper = seed_data["dlopper"]
        result = time_entry_service.total_hours(
            dlopper, seed_data["ecookbook"], criteria=["user"], columns="month"
        )
        assert result["periods"] == ["2026-01", "2026-02", "2026-03"]
        assert result["total"] == 14
        by_key = {(r["user"], r["period"]): r["hours"] for r in result["rows"]}
        assert by_key[(seed_data["jsmith"].id, "2026-02")] == 3
        assert by_key[(dlopper.id, "2026-03")] == 5

    def test_total_hours_date_range(self, seed_data):
        self._log_many(seed_data)
        result = time_entry_service.total_hours(
            seed_data["dlopper"], seed_data["ecookbook"], columns="year",
            date_from="2026-02-01", date_to="2026-02-28",
        )
        assert result["rows"] == [{"period": "2026", "hours": 7.0}]

    def test_total_hours_rejects_unknown(self, seed_data):
        with pytest.raises(ValueError):
            time_entry_service.total_hours(seed_data["jsmith"], criteria=["mood"])
        with pytest.raises(ValueError):
            time_entry_service.total_hours(seed_data["jsmith"], columns="decade")


class TestTimelogRoutes:
    def test_index_requires_permission(self, client, seed_data):
        db.session.commit()
        _login(client, "rhill")
        resp = client.get("/projects/private-child/time_entries")
        assert resp.status_code == 403

    def test_index_visitor_gets_401(self, client, seed_data):
        db.session.commit()
        resp = client.get("/projects/private-child/time_entries")
        assert resp.status_code == 401

    def test_unknown_project(self, client, seed_data):
        resp = client.get("/projects/nope/time_entries")
        assert resp.status_code == 404

    def test_create_and_list(self, client, seed_data):
        db.session.commit()
        _login(client, "dlopper")
        resp = client.post("/projects/ecookbook/time_entries", json={
            "hours": "1h30", "spent_on": "2026-03-12", "comments": "Review",
        })
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["hours"] == 1.5
        assert data["tweek"] == 11

        resp = client.get("/projects/ecookbook/time_entries")
        assert resp.status_code == 200
        body = resp.get_json()
        assert len(body["time_entries"]) == 1
        assert body["from"] == "2026-03-12"

    def test_create_invalid(self, client, seed_data):
        db.session.commit()
        _login(client, "dlopper")
        resp = client.post("/projects/ecookbook/time_entries", json={
            "hours": -1, "spent_on": "2026-03-12",
        })
        assert resp.status_code == 422
        assert resp.get_json()["errors"]["hours"] == ["invalid"]

    def test_create_with_nan_hours(self, client, seed_data):
        db.session.commit()
        _login(client, "dlopper")
        resp = client.post("/projects/ecookbook/time_entries", json={
            "hours": float("nan"), "spent_on": "2026-03-12",
        })
        assert resp.status_code == 422
        assert resp.get_json()["errors"]["hours"] == ["invalid"]
        assert TimeEntry.query.count() == 0

    def test_create_with_foreign_issue(self, client, seed_data):
        issue = make_issue(
            seed_data["onlinestore"], seed_data["dlopper"], seed_data["tracker"], seed_data["new"]
        )
        db.session.commit()
        _login(client, "dlopper")
        resp = client.post("/projects/ecookbook/time_entries", json={
            "hours": 1, "spent_on": "2026-03-12", "issue_id": issue.id,
        })
        assert resp.status_code == 422
        assert resp.get_json()["errors"]["issue_id"] == ["invalid"]

    def test_update(self, client, seed_data):
        entry = _entry(seed_data, user=seed_data["dlopper"])
        assert entry.save()
        db.session.commit()
        _login(client, "dlopper")
        resp = client.put(f"/projects/ecookbook/time_entries/{entry.id}", json={"hours": 4})
        assert resp.status_code == 200
        assert resp.get_json()["hours"] == 4.0

    def test_report(self, client, seed_data):
        TestService()._log_many(seed_data)
        db.session.commit()
        _login(client, "jsmith")
        resp = client.get("/projects/ecookbook/time_entries/report?criteria=user&columns=year")
        assert resp.status_code == 200
        # jsmith cannot see the private subproject
        assert resp.get_json()["total"] == 9

    def test_report_bad_columns(self, client, seed_data):
        db.session.commit()
        _login(client, "jsmith")
        resp = client.get("/projects/ecookbook/time_entries/report?columns=decade")
        assert resp.status_code == 400
