"""Watchers blueprint — /watchers/*

Lets the current user start or stop watching an issue, a wiki or a wiki
page. The object is named by its type and id in the JSON body:
``{"object_type": "Issue", "object_id": "..."}``.

Route Map:
  POST /watchers/watch     — Watch an object
  POST /watchers/unwatch   — Stop watching an object
"""

from flask import Blueprint, abort, jsonify, request
from flask_login import current_user, login_required

from app.extensions import db
from app.models.watcher import WATCHABLE_TYPES

watchers_bp = Blueprint("watchers", __name__, url_prefix="/watchers")


def _find_watchable():
    data = request.get_json(silent=True) or {}
    model = WATCHABLE_TYPES.get(data.get("object_type") or "")
    object_id = data.get("object_id")
    if model is None or not object_id:
        abort(404)
    watchable = db.session.get(model, object_id)
    if watchable is None or not watchable.visible_to(current_user):
        abort(404)
    return watchable


@watchers_bp.route("/watch", methods=["POST"])
@login_required
def watch():
    watchable = _find_watchable()
    if not watchable.watched_by(current_user):
        watcher = watchable.set_watcher(current_user, True)
        if watcher.errors:
            db.session.rollback()
            return jsonify({"errors": watcher.errors}), 422
        db.session.commit()
    return jsonify({"watched": True, "watchers": len(watchable.watchers())})


@watchers_bp.route("/unwatch", methods=["POST"])
@login_required
def unwatch():
    watchable = _find_watchable()
    watchable.set_watcher(current_user, False)
    db.session.commit()
    return jsonify({"watched": False, "watchers": len(watchable.watchers())})
