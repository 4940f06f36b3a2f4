"""Permission registry.

Static table of every permission the tracker knows about. Each permission
names the controller actions it unlocks, the project module that must be
enabled for it to apply (None = always available), and whether it is
public (granted to every role) or restricted to logged-in users / members.

Read-only after import; roles and projects consult it by permission name.
"""


class Permission:
    """A single named permission."""

    REQUIRES = (None, "loggedin", "member")

    def __init__(self, name, actions, project_module=None, public=False,
                 require=None):
        if require not in self.REQUIRES:
            raise ValueError(f"Invalid require '{require}' for permission {name}")
        self.name = name
        self.project_module = project_module
        self.public = public
        self.require = require
        self.actions = []
        for controller, action_names in actions.items():
            for action in action_names:
                self.actions.append(f"{controller}/{action}")

    @property
    def require_member(self):
        return self.require == "member"

    @property
    def require_loggedin(self):
        return self.require in ("member", "loggedin")

    def __repr__(self):
        return f"<Permission {self.name}>"


PERMISSIONS = [
    # --- Project (no module) ---
    Permission("view_project", {"projects": ["show"]}, public=True),
    Permission("search_project", {"search": ["index"]}, public=True),
    Permission("add_project", {"projects": ["new", "create"]}, require="loggedin"),
    Permission("edit_project", {"projects": ["settings", "edit", "update"]}, require="member"),
    Permission("select_project_modules", {"projects": ["modules"]}, require="member"),
    Permission("manage_members", {"projects": ["settings"], "members": ["new", "edit", "destroy"]}, require="member"),
    Permission("manage_versions", {"versions": ["new", "create", "edit", "update", "destroy"]}, require="member"),
    Permission("add_subprojects", {"projects": ["new", "create"]}, require="member"),

    # --- Issue tracking ---
    Permission("view_issues", {"issues": ["index", "show"], "issues/reports": ["report", "report_details"], "journals": ["index", "diff"]}, project_module="issue_tracking"),
    Permission("add_issues", {"issues": ["new", "create"]}, project_module="issue_tracking"),
    Permission("edit_issues", {"issues": ["edit", "update"], "journals": ["new"]}, project_module="issue_tracking"),
    Permission("manage_issue_relations", {"issue_relations": ["new", "destroy"]}, project_module="issue_tracking"),
    Permission("add_issue_notes", {"issues": ["edit", "update"], "journals": ["new"]}, project_module="issue_tracking"),
    Permission("delete_issues", {"issues": ["destroy"]}, project_module="issue_tracking", require="member"),
    Permission("manage_categories", {"issue_categories": ["new", "edit", "destroy"]}, project_module="issue_tracking", require="member"),
    Permission("view_issue_watchers", {}, project_module="issue_tracking"),
    Permission("add_issue_watchers", {"watchers": ["new"]}, project_module="issue_tracking"),
    Permission("delete_issue_watchers", {"watchers": ["destroy"]}, project_module="issue_tracking"),

    # --- Time tracking ---
    Permission("log_time", {"timelog": ["new", "create"]}, project_module="time_tracking", require="loggedin"),
    Permission("view_time_entries", {"timelog": ["index", "show", "report"]}, project_module="time_tracking"),
    Permission("edit_time_entries", {"timelog": ["edit", "update", "destroy"]}, project_module="time_tracking", require="member"),
    Permission("edit_own_time_entries", {"timelog": ["edit", "update", "destroy"]}, project_module="time_tracking", require="loggedin"),
    Permission("manage_project_activities", {"project_enumerations": ["update", "destroy"]}, project_module="time_tracking", require="member"),

    # --- News ---
    Permission("view_news", {"news": ["index", "show"]}, project_module="news", public=True),
    Permission("manage_news", {"news": ["new", "create", "edit", "update", "destroy"]}, project_module="news", require="member"),
    Permission("comment_news", {"comments": ["create"]}, project_module="news"),

    # --- Wiki ---
    Permission("view_wiki_pages", {"wiki": ["index", "show", "special", "date_index"]}, project_module="wiki"),
    Permission("view_wiki_edits", {"wiki": ["history", "diff", "annotate"]}, project_module="wiki"),
    Permission("edit_wiki_pages", {"wiki": ["edit", "update", "preview"]}, project_module="wiki"),
    Permission("delete_wiki_pages", {"wiki": ["destroy"]}, project_module="wiki", require="member"),
    Permission("manage_wiki", {"wikis": ["edit", "destroy"]}, project_module="wiki", require="member"),

    # --- Repository ---
    Permission("browse_repository", {"repositories": ["show", "browse", "entry", "changes", "diff"]}, project_module="repository"),
    Permission("commit_access", {}, project_module="repository"),
    Permission("manage_repository", {"repositories": ["edit", "committers", "destroy"]}, project_module="repository", require="member"),

    # --- Boards ---
    Permission("view_messages", {"boards": ["index", "show"], "messages": ["show"]}, project_module="boards", public=True),
    Permission("add_messages", {"messages": ["new", "reply", "quote"]}, project_module="boards"),
    Permission("manage_boards", {"boards": ["new", "edit", "destroy"]}, project_module="boards", require="member"),
]

_BY_NAME = {p.name: p for p in PERMISSIONS}


def permissions():
    return list(PERMISSIONS)


def permission(name):
    """Return the Permission registered under ``name`` or None."""
    return _BY_NAME.get(name)


def public_permissions():
    return [p for p in PERMISSIONS if p.public]


def members_only_permissions():
    return [p for p in PERMISSIONS if p.require_member]


def loggedin_only_permissions():
    return [p for p in PERMISSIONS if p.require_loggedin]


def allowed_actions(permission_names):
    """Flatten permission names into "controller/action" strings."""
    actions = []
    for name in permission_names:
        p = _BY_NAME.get(name)
        if p is not None:
            actions.extend(p.actions)
    return actions


def available_project_modules():
    modules = []
    for p in PERMISSIONS:
        if p.project_module and p.project_module not in modules:
            modules.append(p.project_module)
    return modules


def modules_permissions(module_names):
    """Permissions available on a project with ``module_names`` enabled."""
    return [
        p for p in PERMISSIONS
        if p.project_module is None or p.project_module in module_names
    ]


def normalize_action(action):
    """Return ``action`` with a leading "/" stripped from its controller.

    Controller-style actions are dicts like
    ``{"controller": "/issues", "action": "show"}``; the input is never
    mutated.
    """
    if isinstance(action, dict):
        controller = str(action.get("controller") or "")
        if controller.startswith("/"):
            action = dict(action, controller=controller[1:])
    return action


def action_path(action):
    """``{"controller": "issues", "action": "show"}`` -> ``"issues/show"``."""
    return f"{action.get('controller')}/{action.get('action')}"
