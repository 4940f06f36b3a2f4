"""Membership models.

- Member: join between a principal (user or group) and a project.
- MemberRole: the ordered roles a membership carries.

Rows copied from a group membership record their source in ``inherited_from``.
"""

import uuid

from app.extensions import db


class Member(db.Model):
    __tablename__ = "members"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    principal_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    mail_notification = db.Column(db.Boolean, nullable=False, default=False)
    # group membership this one was copied from
    inherited_from = db.Column(
        db.String(36),
        db.ForeignKey("members.id", ondelete="CASCADE"),
        nullable=True,
    )
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    __table_args__ = (
        db.UniqueConstraint(
            "principal_id", "project_id", name="uq_principal_project"
        ),
    )

    # --- Relationships ---
    principal = db.relationship("Principal", back_populates="members")
    project = db.relationship("Project", back_populates="members")
    member_roles = db.relationship(
        "MemberRole",
        back_populates="member",
        cascade="all, delete-orphan",
        order_by="MemberRole.position",
    )

    @property
    def roles(self):
        return [mr.role for mr in self.member_roles]

    @roles.setter
    def roles(self, roles):
        self.member_roles = [
            MemberRole(role=role, position=i) for i, role in enumerate(roles)
        ]

    def add_role(self, role):
        if role not in self.roles:
            self.member_roles.append(
                MemberRole(role=role, position=len(self.member_roles))
            )

    def __repr__(self):
        return f"<Member principal={self.principal_id} project={self.project_id}>"


class MemberRole(db.Model):
    __tablename__ = "member_roles"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    member_id = db.Column(
        db.String(36),
        db.ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
    )
    role_id = db.Column(
        db.String(36),
        db.ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
    )
    position = db.Column(db.Integer, nullable=False, default=0)
    inherited_from = db.Column(
        db.String(36),
        db.ForeignKey("member_roles.id", ondelete="CASCADE"),
        nullable=True,
    )

    # --- Relationships ---
    member = db.relationship("Member", back_populates="member_roles")
    role = db.relationship("Role", back_populates="member_roles")

    def __repr__(self):
        return f"<MemberRole member={self.member_id} role={self.role_id}>"
