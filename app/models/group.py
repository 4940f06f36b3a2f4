"""Group model.

A named collection of users. The group name is stored in ``lastname``.
Groups hold project memberships of their own; their members are evaluated
as additional permission candidates for the users in them. Joining a group
copies its memberships onto the user; the copies point back through
``inherited_from`` and are withdrawn when the user leaves.
"""

from app.extensions import db
from app.models.member import Member, MemberRole
from app.models.principal import Principal, group_users


class Group(Principal):
    __mapper_args__ = {"polymorphic_identity": "Group"}

    users = db.relationship(
        "User",
        secondary=group_users,
        primaryjoin=lambda: Principal.id == group_users.c.group_id,
        secondaryjoin=lambda: Principal.id == group_users.c.user_id,
        back_populates="groups",
        order_by="User.login",
    )

    def __init__(self, **kwargs):
        if "name" in kwargs:
            kwargs["lastname"] = kwargs.pop("name")
        super().__init__(**kwargs)

    @property
    def group_name(self):
        return self.lastname

    def name(self, formatter=None):
        return self.lastname

    def roles_for_project(self, project):
        """Membership roles on an active project; groups have no fallback role."""
        if project is None or not project.active:
            return []
        membership = self.membership_for(project)
        return membership.roles if membership is not None else []

    def add_user(self, user):
        """Add ``user`` and copy the group's memberships onto them."""
        if user in self.users:
            return
        self.users.append(user)
        if self.members:
            db.session.flush()
        for group_member in self.members:
            self._inherit_membership(user, group_member)

    def remove_user(self, user):
        """Remove ``user`` and withdraw the roles inherited from the group."""
        if user not in self.users:
            return
        self.users.remove(user)
        member_ids = {m.id for m in self.members}
        member_role_ids = {mr.id for m in self.members for mr in m.member_roles}
        for membership in list(user.members):
            membership.member_roles = [
                mr for mr in membership.member_roles
                if mr.inherited_from not in member_role_ids
            ]
            if membership.inherited_from in member_ids and not membership.member_roles:
                user.members.remove(membership)

    def _inherit_membership(self, user, group_member):
        membership = user.membership_for(group_member.project)
        if membership is None:
            membership = Member(
                principal=user,
                project=group_member.project,
                inherited_from=group_member.id,
            )
            db.session.add(membership)
        inherited = {mr.inherited_from for mr in membership.member_roles}
        for group_role in group_member.member_roles:
            if group_role.id not in inherited:
                membership.member_roles.append(MemberRole(
                    role=group_role.role,
                    position=len(membership.member_roles),
                    inherited_from=group_role.id,
                ))

    def _validate(self):
        if not (self.lastname or "").strip():
            self.add_error("lastname", "blank")
        elif len(self.lastname) > 30:
            self.add_error("lastname", "too_long")
        else:
            query = Group.query.filter(
                db.func.lower(Principal.lastname) == self.lastname.lower()
            )
            if self.id is not None:
                query = query.filter(Principal.id != self.id)
            if query.first() is not None:
                self.add_error("lastname", "taken")

    def __repr__(self):
        return f"<Group {self.lastname}>"
