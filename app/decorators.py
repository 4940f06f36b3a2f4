"""
Custom route decorators for access control.

- authorize: checks the current user's permission for the request's
  controller/action on g.project (set by the project middleware), or
  globally when the route has no project.
"""

from functools import wraps

from flask import abort, g
from flask_login import current_user


def authorize(controller, action, globally=False):
    """Require the permission covering ``controller/action``.

    Visitors are answered 401 so they can log in; logged-in users 403.
    """

    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            target = {"controller": controller, "action": action}
            project = getattr(g, "project", None)
            if project is not None:
                allowed = current_user.allowed_to(target, project)
            elif globally:
                allowed = current_user.allowed_to(target, None, globally=True)
            else:
                abort(404)

            if not allowed:
                abort(403 if current_user.is_authenticated else 401)
            return f(*args, **kwargs)

        return decorated

    return decorator
