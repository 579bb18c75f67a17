"""Group membership and administration rules.

Admin rights belong to the group's creator and to active members holding the
``admin`` role. Removal and group deletion are soft: rows are deactivated,
not deleted.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.security import hash_password, verify_password
from app.models.group import ClassGroup
from app.models.group_member import GroupMember

logger = logging.getLogger(__name__)


class GroupNotFoundError(Exception):
    pass


class GroupPermissionError(Exception):
    pass


class GroupRuleError(Exception):
    pass


class GroupPasswordError(Exception):
    """The stored password hash is unusable; this is not a wrong password."""


def get_active_group(db: Session, group_id: str) -> ClassGroup:
    group = db.scalar(select(ClassGroup).where(ClassGroup.id == group_id, ClassGroup.is_active.is_(True)))
    if not group:
        raise GroupNotFoundError("Group not found")
    return group


def get_membership(db: Session, group_id: str, user_id: str, active_only: bool = True) -> GroupMember | None:
    stmt = select(GroupMember).where(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
    if active_only:
        stmt = stmt.where(GroupMember.is_active.is_(True))
    return db.scalar(stmt)


def is_group_admin(db: Session, group_id: str, user_id: str) -> bool:
    creator_id = db.scalar(select(ClassGroup.created_by).where(ClassGroup.id == group_id))
    if creator_id is not None and creator_id == user_id:
        return True
    membership = get_membership(db, group_id, user_id)
    return membership is not None and membership.role == "admin"


def is_group_member(db: Session, group_id: str, user_id: str) -> bool:
    return get_membership(db, group_id, user_id) is not None


def _require_admin(db: Session, group_id: str, user_id: str, action: str) -> None:
    if not is_group_admin(db, group_id, user_id):
        raise GroupPermissionError(f"Only admins can {action}")


def _active_admin_count(db: Session, group_id: str) -> int:
    stmt = select(func.count(GroupMember.id)).where(
        GroupMember.group_id == group_id,
        GroupMember.role == "admin",
        GroupMember.is_active.is_(True),
    )
    return db.scalar(stmt) or 0


def create_group(
    db: Session,
    creator_id: str,
    name: str,
    year: int,
    section: str,
    subject: str | None = None,
    description: str | None = None,
    password: str | None = None,
    max_members: int = 100,
) -> ClassGroup:
    duplicate = db.scalar(
        select(ClassGroup.id).where(ClassGroup.year == year, ClassGroup.section == section, ClassGroup.subject == subject)
    )
    if duplicate:
        raise GroupRuleError("A group for this year, section and subject already exists")
    group = ClassGroup(
        name=name,
        description=description,
        year=year,
        section=section,
        subject=subject,
        max_members=max_members,
        member_count=1,
        created_by=creator_id,
        password_hash=hash_password(password) if password else None,
    )
    db.add(group)
    db.flush()
    db.add(GroupMember(group_id=group.id, user_id=creator_id, role="admin", is_active=True))
    db.commit()
    db.refresh(group)
    logger.info("group_created", extra={"group_id": group.id, "creator_id": creator_id})
    return group


def verify_group_password(db: Session, group_id: str, password: str | None) -> bool:
    group = get_active_group(db, group_id)
    if group.password_hash is None:
        return True
    if not password:
        return False
    try:
        return verify_password(password, group.password_hash)
    except ValueError as exc:
        logger.error("group_password_hash_invalid", extra={"group_id": group_id})
        raise GroupPasswordError("Stored group password is unreadable") from exc


def join_group(db: Session, group_id: str, user_id: str, password: str | None = None) -> GroupMember:
    group = get_active_group(db, group_id)
    membership = get_membership(db, group_id, user_id, active_only=False)
    if membership is not None and membership.is_active:
        return membership
    if not verify_group_password(db, group_id, password):
        raise GroupPermissionError("Incorrect group password")
    if group.member_count >= group.max_members:
        raise GroupRuleError("Group is full")

    if membership is None:
        membership = GroupMember(group_id=group_id, user_id=user_id, role="member", is_active=True)
        db.add(membership)
    else:
        membership.is_active = True
        membership.role = "member"
    group.member_count += 1
    db.commit()
    db.refresh(membership)
    return membership


def list_members(db: Session, group_id: str) -> list[GroupMember]:
    stmt = (
        select(GroupMember)
        .where(GroupMember.group_id == group_id, GroupMember.is_active.is_(True))
        .order_by(GroupMember.joined_at.asc())
    )
    return list(db.scalars(stmt).all())


def promote_to_admin(db: Session, group_id: str, target_user_id: str, requesting_user_id: str) -> GroupMember:
    get_active_group(db, group_id)
    _require_admin(db, group_id, requesting_user_id, "promote members")
    membership = get_membership(db, group_id, target_user_id)
    if membership is None:
        raise GroupRuleError("User is not a member of this group")
    membership.role = "admin"
    db.commit()
    logger.info("group_admin_promoted", extra={"group_id": group_id, "user_id": target_user_id})
    return membership


def demote_admin(db: Session, group_id: str, target_user_id: str, requesting_user_id: str) -> GroupMember:
    group = get_active_group(db, group_id)
    _require_admin(db, group_id, requesting_user_id, "demote other admins")
    if target_user_id == group.created_by:
        raise GroupRuleError("Cannot demote the group creator")
    if requesting_user_id == target_user_id and _active_admin_count(db, group_id) <= 1:
        raise GroupRuleError("Cannot demote yourself as the only admin")
    membership = get_membership(db, group_id, target_user_id)
    if membership is None:
        raise GroupRuleError("User is not a member of this group")
    membership.role = "member"
    db.commit()
    return membership


def remove_member(db: Session, group_id: str, target_user_id: str, requesting_user_id: str) -> None:
    group = get_active_group(db, group_id)
    _require_admin(db, group_id, requesting_user_id, "remove members")
    if target_user_id == group.created_by:
        raise GroupRuleError("Cannot remove the group creator")
    membership = get_membership(db, group_id, target_user_id)
    if membership is None:
        raise GroupRuleError("User is not a member of this group")
    membership.is_active = False
    group.member_count = max(0, group.member_count - 1)
    db.commit()
    logger.info("group_member_removed", extra={"group_id": group_id, "user_id": target_user_id})


def update_group_details(
    db: Session,
    group_id: str,
    requesting_user_id: str,
    name: str | None = None,
    description: str | None = None,
) -> ClassGroup:
    group = get_active_group(db, group_id)
    _require_admin(db, group_id, requesting_user_id, "update group details")
    if name is not None:
        group.name = name
    if description is not None:
        group.description = description
    db.commit()
    db.refresh(group)
    return group


def delete_group(db: Session, group_id: str, requesting_user_id: str) -> None:
    group = get_active_group(db, group_id)
    if requesting_user_id != group.created_by:
        raise GroupPermissionError("Only the group creator can delete the group")
    group.is_active = False
    for membership in list_members(db, group_id):
        membership.is_active = False
    db.commit()
    logger.info("group_deleted", extra={"group_id": group_id})


def set_group_password(db: Session, group_id: str, password: str | None, requesting_user_id: str) -> ClassGroup:
    group = get_active_group(db, group_id)
    _require_admin(db, group_id, requesting_user_id, "change the group password")
    group.password_hash = hash_password(password) if password else None
    db.commit()
    db.refresh(group)
    return group
