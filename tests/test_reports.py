"""Tests for issue reports (counts per status).

Covers:
- by_* counters, subprojects included and archived ones excluded
- report_details rows and unknown details
- /projects/<id>/issues/report routes and their permission gate
"""

from app.extensions import db
from app.models.issue import IssueCategory, Version
from app.services import report_service
from tests.conftest import make_issue


def _login(client, login, password="secret123"):
    return client.post("/auth/login", json={"login": login, "password": password})


def _totals(rows, field):
    """{(field value, closed): total} for easy assertions."""
    return {(r[field], r["closed"]): r["total"] for r in rows}


def _seed_issues(seed_data):
    ecookbook, child = seed_data["ecookbook"], seed_data["private_child"]
    jsmith, dlopper = seed_data["jsmith"], seed_data["dlopper"]
    bug, feature = seed_data["tracker"], seed_data["feature"]
    new, closed = seed_data["new"], seed_data["closed"]

    make_issue(ecookbook, jsmith, bug, new)
    make_issue(ecookbook, jsmith, bug, closed)
    make_issue(ecookbook, dlopper, feature, new, assigned_to=dlopper)
    make_issue(child, dlopper, bug, new)


class TestCounters:
    def test_by_tracker(self, seed_data):
        _seed_issues(seed_data)
        totals = _totals(report_service.by_tracker(seed_data["ecookbook"]), "tracker_id")
        bug, feature = seed_data["tracker"].id, seed_data["feature"].id
        assert totals == {(bug, False): 2, (bug, True): 1, (feature, False): 1}

    def test_by_author(self, seed_data):
        _seed_issues(seed_data)
        totals = _totals(report_service.by_author(seed_data["ecookbook"]), "author_id")
        assert totals[(seed_data["jsmith"].id, False)] == 1
        assert totals[(seed_data["jsmith"].id, True)] == 1
        assert totals[(seed_data["dlopper"].id, False)] == 2

    def test_by_assigned_to(self, seed_data):
        _seed_issues(seed_data)
        totals = _totals(report_service.by_assigned_to(seed_data["ecookbook"]), "assigned_to_id")
        assert totals[(seed_data["dlopper"].id, False)] == 1
        assert totals[(None, False)] == 2

    def test_by_subproject_excludes_project(self, seed_data):
        _seed_issues(seed_data)
        rows = report_service.by_subproject(seed_data["ecookbook"])
        assert rows == [{
            "status_id": seed_data["new"].id,
            "closed": False,
            "project_id": seed_data["private_child"].id,
            "total": 1,
        }]

    def test_archived_subproject_excluded(self, seed_data):
        _seed_issues(seed_data)
        seed_data["private_child"].archive()
        db.session.flush()
        assert report_service.by_subproject(seed_data["ecookbook"]) == []

    def test_by_category_and_version(self, seed_data):
        ecookbook = seed_data["ecookbook"]
        category = IssueCategory(project=ecookbook, name="Printing")
        version = Version(project=ecookbook, name="1.0")
        db.session.add_all([category, version])
        db.session.flush()
        make_issue(
            ecookbook, seed_data["jsmith"], seed_data["tracker"], seed_data["new"],
            category=category, fixed_version=version,
        )

        by_category = _totals(report_service.by_category(ecookbook), "category_id")
        by_version = _totals(report_service.by_version(ecookbook), "fixed_version_id")
        assert by_category == {(category.id, False): 1}
        assert by_version == {(version.id, False): 1}


class TestReportDetails:
    def test_unknown_detail(self, seed_data):
        assert report_service.report_details(seed_data["ecookbook"], "mood") is None

    def test_tracker_detail(self, seed_data):
        _seed_issues(seed_data)
        details = report_service.report_details(seed_data["ecookbook"], "tracker")
        assert details["field"] == "tracker_id"
        assert details["rows"] == [seed_data["tracker"], seed_data["feature"]]
        assert [s.name for s in details["statuses"]] == ["New", "Closed"]
        assert sum(r["total"] for r in details["data"]) == 4

    def test_shared_versions_listed(self, seed_data):
        ecookbook = seed_data["ecookbook"]
        shared = Version(project=ecookbook, name="shared", sharing="descendants")
        own = Version(project=ecookbook, name="own")
        db.session.add_all([shared, own])
        db.session.flush()
        details = report_service.report_details(seed_data["private_child"], "version")
        assert details["rows"] == [shared]

    def test_summary_has_every_detail(self, seed_data):
        summary = report_service.report(seed_data["ecookbook"])
        assert set(report_service.DETAILS) <= set(summary)
        assert "statuses" in summary


class TestReportRoutes:
    def test_public_project_for_visitor(self, client, seed_data):
        _seed_issues(seed_data)
        db.session.commit()
        resp = client.get("/projects/ecookbook/issues/report")
        assert resp.status_code == 200
        data = resp.get_json()
        assert {s["name"] for s in data["statuses"]} == {"New", "Closed"}

    def test_private_project_visitor_401(self, client, seed_data):
        db.session.commit()
        resp = client.get("/projects/onlinestore/issues/report")
        assert resp.status_code == 401

    def test_private_project_non_member_403(self, client, seed_data):
        db.session.commit()
        _login(client, "rhill")
        resp = client.get("/projects/onlinestore/issues/report")
        assert resp.status_code == 403

    def test_group_member_allowed(self, client, seed_data):
        db.session.commit()
        _login(client, "dlopper")
        resp = client.get("/projects/onlinestore/issues/report/tracker")
        assert resp.status_code == 200
        assert resp.get_json()["field"] == "tracker_id"

    def test_unknown_detail_redirects(self, client, seed_data):
        db.session.commit()
        resp = client.get("/projects/ecookbook/issues/report/mood")
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/projects/ecookbook/issues/report")

    def test_issue_tracking_disabled(self, client, seed_data):
        seed_data["ecookbook"].enabled_module_names = ["wiki"]
        db.session.commit()
        _login(client, "jsmith")
        resp = client.get("/projects/ecookbook/issues/report")
        assert resp.status_code == 403
