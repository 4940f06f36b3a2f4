"""Project context middleware — resolves the project of a request.

Runs before every request whose route has a ``project_identifier`` URL
parameter. Sets g.project, or answers 404 for unknown projects.
"""

from flask import abort, g, request

from app.models.project import Project


def resolve_project():
    """Before-request hook loading g.project from the URL."""
    g.project = None
    if request.view_args is None:
        return
    identifier = request.view_args.get("project_identifier")
    if identifier is None:
        return

    project = Project.query.filter_by(identifier=identifier).first()
    if project is None:
        abort(404)
    g.project = project


def init_project_middleware(app):
    """Register the project resolver as a before_request hook."""
    app.before_request(resolve_project)
