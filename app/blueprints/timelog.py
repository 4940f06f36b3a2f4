"""Timelog blueprint — /projects/<project_identifier>/time_entries/*

Spent time of a project and its subprojects. g.project is set by the
project middleware; every route is gated by the permission covering its
timelog action.

Route Map:
  GET  /projects/<id>/time_entries               — Visible entries
  POST /projects/<id>/time_entries               — Log time
  PUT  /projects/<id>/time_entries/<entry_id>    — Edit an entry
  GET  /projects/<id>/time_entries/report        — Hours per criteria/period
"""

from flask import Blueprint, abort, g, jsonify, request
from flask_login import current_user

from app.decorators import authorize
from app.extensions import db
from app.models.issue import Issue
from app.models.time_entry import TimeEntry
from app.services import time_entry_service
from app.services.time_entry_service import TimeEntryError

timelog_bp = Blueprint(
    "timelog", __name__, url_prefix="/projects/<project_identifier>/time_entries"
)


def _entry_dict(entry):
    return {
        "id": entry.id,
        "project_id": entry.project_id,
        "issue_id": entry.issue_id,
        "user_id": entry.user_id,
        "activity_id": entry.activity_id,
        "hours": entry.hours,
        "comments": entry.comments,
        "spent_on": entry.spent_on.isoformat() if entry.spent_on else None,
        "tyear": entry.tyear,
        "tmonth": entry.tmonth,
        "tweek": entry.tweek,
    }


@timelog_bp.route("", methods=["GET"])
@authorize("timelog", "index")
def index(project_identifier):
    entries = (
        time_entry_service.visible_entries(current_user, g.project)
        .order_by(TimeEntry.spent_on.desc())
        .all()
    )
    return jsonify({
        "time_entries": [_entry_dict(e) for e in entries],
        "total_hours": sum(e.hours for e in entries),
        "from": _iso(time_entry_service.earliest_date_for_project(current_user, g.project)),
        "to": _iso(time_entry_service.latest_date_for_project(current_user, g.project)),
    })


def _iso(value):
    return value.isoformat() if value else None


@timelog_bp.route("", methods=["POST"])
@authorize("timelog", "create")
def create(project_identifier):
    data = request.get_json(silent=True) or {}

    issue = None
    if data.get("issue_id"):
        issue = db.session.get(Issue, data["issue_id"])
        if issue is None:
            return jsonify({"errors": {"issue_id": ["invalid"]}}), 422

    try:
        entry = time_entry_service.log_time(
            current_user._get_current_object(),
            project=g.project,
            issue=issue,
            hours=data.get("hours"),
            spent_on=data.get("spent_on"),
            activity_id=data.get("activity_id"),
            comments=data.get("comments"),
        )
    except TimeEntryError as e:
        db.session.rollback()
        return jsonify({"errors": e.errors}), 422
    except PermissionError:
        abort(403)

    db.session.commit()
    return jsonify(_entry_dict(entry)), 201


@timelog_bp.route("/<entry_id>", methods=["PUT"])
@authorize("timelog", "update")
def update(project_identifier, entry_id):
    entry = db.session.get(TimeEntry, entry_id)
    if entry is None or entry.project_id != g.project.id:
        abort(404)

    data = request.get_json(silent=True) or {}
    attrs = {
        k: data[k]
        for k in ("hours", "spent_on", "comments", "activity_id", "issue_id")
        if k in data
    }
    try:
        time_entry_service.update_entry(entry, current_user._get_current_object(), **attrs)
    except TimeEntryError as e:
        db.session.rollback()
        return jsonify({"errors": e.errors}), 422
    except PermissionError:
        abort(403)

    db.session.commit()
    return jsonify(_entry_dict(entry))


@timelog_bp.route("/report", methods=["GET"])
@authorize("timelog", "report")
def report(project_identifier):
    """Query: criteria=user&criteria=activity&columns=month&from=..&to=.."""
    try:
        result = time_entry_service.total_hours(
            current_user,
            g.project,
            criteria=request.args.getlist("criteria"),
            columns=request.args.get("columns", "month"),
            date_from=request.args.get("from"),
            date_to=request.args.get("to"),
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(result)
