"""Allowance service — the permission resolver and its evaluators.

``PermissionResolver.allowed_to(user, action, context, **options)``
answers "may this user do this action here?". The context is a project,
a collection of projects (allowed on every one) or None with
``globally=True`` (allowed on at least one project / through a builtin
role).

The actual rules live in allowance evaluators. Each evaluator is built
for the user being checked and offers the candidates that may carry a
grant (the user and the user's groups) plus four predicates:
``denied_for_project``, ``granted_for_project``, ``denied_for_global`` and
``granted_for_global``. A single denial by any evaluator for any
candidate refuses the check; otherwise one grant suffices.

The evaluator list is read from ``ALLOWANCE_EVALUATORS`` once in
create_app() and the resolver is stored on the app; nothing is registered
at import time.
"""

import logging
from collections.abc import Iterable

from flask import current_app
from werkzeug.utils import import_string

from app import access_control

logger = logging.getLogger(__name__)

EXTENSION_KEY = "permission_resolver"


class AllowanceEvaluator:
    """Base evaluator: offers the candidates, grants and denies nothing."""

    def __init__(self, user):
        self.user = user

    # --- Candidates ---

    def project_granting_candidates(self, project):
        """The user plus those of the user's groups that are members of
        ``project``."""
        candidates = [self.user]
        for group in getattr(self.user, "groups", []):
            if group.membership_for(project) is not None:
                candidates.append(group)
        return candidates

    def global_granting_candidates(self):
        return [self.user] + list(getattr(self.user, "groups", []))

    # --- Predicates ---

    def denied_for_project(self, candidate, action, project, options):
        return False

    def granted_for_project(self, candidate, action, project, options):
        return False

    def denied_for_global(self, candidate, action, options):
        return False

    def granted_for_global(self, candidate, action, options):
        return False


class DefaultAllowanceEvaluator(AllowanceEvaluator):
    """Grants when one of the candidate's roles allows the action.

    In a project the roles are the candidate's membership roles; a user
    without membership falls back to the non-member role (logged in) or
    the anonymous role (visitor), which only count on public projects.
    Globally, every active membership counts, plus the builtin role.
    """

    def granted_for_project(self, candidate, action, project, options):
        for role in candidate.roles_for_project(project):
            if not (project.is_public or role.member):
                continue
            if role.allowed_to(action):
                return True
        return False

    def granted_for_global(self, candidate, action, options):
        for membership in candidate.memberships:
            if any(role.allowed_to(action) for role in membership.roles):
                return True
        builtin = self._builtin_role(candidate)
        return builtin is not None and builtin.allowed_to(action)

    @staticmethod
    def _builtin_role(candidate):
        from app.models.role import Role
        from app.models.user import User

        if not isinstance(candidate, User):
            return None
        return Role.non_member() if candidate.logged else Role.anonymous()


class PermissionResolver:
    """Evaluates permissions with a fixed, ordered list of evaluators."""

    def __init__(self, evaluators):
        self.evaluators = list(evaluators)

    def allowed_to(self, user, action, context=None, **options):
        """Is ``user`` allowed to do ``action`` on ``context``?

        ``action`` is a permission name or a controller-style dict
        ``{"controller": ..., "action": ...}``.
        """
        from app.models.project import Project

        action = access_control.normalize_action(action)

        if isinstance(context, Project):
            return self.allowed_to_in_project(user, action, context, **options)
        if isinstance(context, Iterable) and not isinstance(context, (str, bytes, dict)):
            projects = list(context)
            # Authorize only if allowed on every project of the collection
            return bool(projects) and all(
                self.allowed_to(user, action, project, **options)
                for project in projects
            )
        if context is None and options.get("globally"):
            return self.allowed_to_globally(user, action, **options)
        return False

    def allowed_to_in_project(self, user, action, project, **options):
        action = access_control.normalize_action(action)

        # No action allowed on archived projects
        if not project.active:
            return False
        # No action allowed on disabled modules
        if not project.allows_to(action):
            return False
        # Admin users are authorized for anything else
        if getattr(user, "is_admin", False):
            return True

        evaluators = self._evaluators_for(user)
        if not evaluators:
            return False
        candidates = _unique(
            c for e in evaluators for c in e.project_granting_candidates(project)
        )
        return self._resolve(
            candidates,
            lambda e, c: e.denied_for_project(c, action, project, options),
            lambda e, c: e.granted_for_project(c, action, project, options),
            evaluators,
        )

    def allowed_to_globally(self, user, action, **options):
        """Is ``user`` allowed to do ``action`` on at least one project?"""
        action = access_control.normalize_action(action)

        # Admin users are always authorized
        if getattr(user, "is_admin", False):
            return True

        evaluators = self._evaluators_for(user)
        if not evaluators:
            return False
        candidates = _unique(
            c for e in evaluators for c in e.global_granting_candidates()
        )
        return self._resolve(
            candidates,
            lambda e, c: e.denied_for_global(c, action, options),
            lambda e, c: e.granted_for_global(c, action, options),
            evaluators,
        )

    def _evaluators_for(self, user):
        return [factory(user) for factory in self.evaluators]

    @staticmethod
    def _resolve(candidates, denied, granted, evaluators):
        """Refuse when any evaluator denies any candidate, else allow on one grant.

        A denial on one candidate (a group, say) refuses the whole check
        rather than only discarding that candidate.
        """
        for candidate in candidates:
            for evaluator in evaluators:
                if denied(evaluator, candidate):
                    return False
        return any(
            granted(evaluator, candidate)
            for candidate in candidates
            for evaluator in evaluators
        )


def _unique(items):
    result = []
    for item in items:
        if not any(item is seen for seen in result):
            result.append(item)
    return result


def load_evaluators(paths):
    """Import evaluator classes from dotted paths, keeping their order."""
    return [import_string(path) for path in paths]


def init_permissions(app):
    """Build the app's resolver from ALLOWANCE_EVALUATORS."""
    evaluators = load_evaluators(app.config.get("ALLOWANCE_EVALUATORS", []))
    if not evaluators:
        logger.warning("No allowance evaluators configured; every check will be denied.")
    app.extensions[EXTENSION_KEY] = PermissionResolver(evaluators)


def get_resolver():
    """The resolver of the current app (denies everything if none)."""
    resolver = current_app.extensions.get(EXTENSION_KEY)
    if resolver is None:
        return PermissionResolver([])
    return resolver
