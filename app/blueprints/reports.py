"""Issue reports blueprint — /projects/<project_identifier>/issues/report

Issue counts per status for a project, gated by view_issues.

Route Map:
  GET /projects/<id>/issues/report            — Summary of every detail
  GET /projects/<id>/issues/report/<detail>   — One detail (tracker,
                                                version, priority, ...)
"""

from flask import Blueprint, g, jsonify, redirect, url_for

from app.decorators import authorize
from app.services import report_service

reports_bp = Blueprint(
    "reports", __name__, url_prefix="/projects/<project_identifier>/issues/report"
)


def _ids(objects):
    return [{"id": o.id, "name": str(o)} for o in objects]


@reports_bp.route("", methods=["GET"])
@authorize("issues/reports", "report")
def report(project_identifier):
    summary = report_service.report(g.project)
    summary["statuses"] = _ids(summary["statuses"])
    return jsonify(summary)


@reports_bp.route("/<detail>", methods=["GET"])
@authorize("issues/reports", "report_details")
def report_details(project_identifier, detail):
    details = report_service.report_details(g.project, detail)
    if details is None:
        return redirect(url_for("reports.report", project_identifier=project_identifier))
    details["rows"] = _ids(details["rows"])
    details["statuses"] = _ids(details["statuses"])
    return jsonify(details)
