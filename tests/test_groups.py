import pytest
from sqlalchemy import select

from app.models.group_member import GroupMember
from app.services import groups as group_service
from app.services.groups import GroupNotFoundError, GroupPasswordError, GroupPermissionError, GroupRuleError


def _create(db, creator, **kwargs):
    kwargs.setdefault("name", "ECE 2B Signals")
    kwargs.setdefault("year", 2)
    kwargs.setdefault("section", "B")
    kwargs.setdefault("subject", "Signals")
    return group_service.create_group(db, creator.id, **kwargs)


def test_creator_becomes_admin(db, make_user):
    creator = make_user()
    group = _create(db, creator)

    membership = group_service.get_membership(db, group.id, creator.id)
    assert membership.role == "admin"
    assert group.member_count == 1
    assert group_service.is_group_admin(db, group.id, creator.id)


def test_admin_role_follows_membership(db, make_user):
    creator, student = make_user(), make_user()
    group = _create(db, creator)
    group_service.join_group(db, group.id, student.id)

    assert not group_service.is_group_admin(db, group.id, student.id)
    group_service.promote_to_admin(db, group.id, student.id, creator.id)
    assert group_service.is_group_admin(db, group.id, student.id)
    group_service.remove_member(db, group.id, student.id, creator.id)
    assert not group_service.is_group_admin(db, group.id, student.id)


def test_members_cannot_promote(db, make_user):
    creator, student, other = make_user(), make_user(), make_user()
    group = _create(db, creator)
    group_service.join_group(db, group.id, student.id)
    group_service.join_group(db, group.id, other.id)

    with pytest.raises(GroupPermissionError):
        group_service.promote_to_admin(db, group.id, other.id, student.id)


def test_creator_cannot_be_demoted_or_removed(db, make_user):
    creator, student = make_user(), make_user()
    group = _create(db, creator)
    group_service.join_group(db, group.id, student.id)
    group_service.promote_to_admin(db, group.id, student.id, creator.id)

    with pytest.raises(GroupRuleError):
        group_service.demote_admin(db, group.id, creator.id, student.id)
    with pytest.raises(GroupRuleError):
        group_service.remove_member(db, group.id, creator.id, student.id)


def test_sole_admin_cannot_demote_self(db, make_user):
    creator, student = make_user(), make_user()
    group = _create(db, creator)
    group_service.join_group(db, group.id, student.id)
    group_service.promote_to_admin(db, group.id, student.id, creator.id)
    creator_membership = db.scalar(
        select(GroupMember).where(GroupMember.group_id == group.id, GroupMember.user_id == creator.id)
    )
    creator_membership.role = "member"
    db.commit()

    with pytest.raises(GroupRuleError):
        group_service.demote_admin(db, group.id, student.id, student.id)


def test_password_protected_join(db, make_user):
    creator, student = make_user(), make_user()
    group = _create(db, creator, password="lab-secret")

    with pytest.raises(GroupPermissionError):
        group_service.join_group(db, group.id, student.id, password="wrong")
    with pytest.raises(GroupPermissionError):
        group_service.join_group(db, group.id, student.id)

    membership = group_service.join_group(db, group.id, student.id, password="lab-secret")
    assert membership.is_active
    db.refresh(group)
    assert group.member_count == 2


def test_corrupt_password_hash_is_not_a_wrong_password(db, make_user):
    creator = make_user()
    group = _create(db, creator)
    group.password_hash = "not-a-bcrypt-hash"
    db.commit()

    with pytest.raises(GroupPasswordError):
        group_service.verify_group_password(db, group.id, "anything")


def test_clearing_password_removes_protection(db, make_user):
    creator = make_user()
    group = _create(db, creator, password="lab-secret")

    group = group_service.set_group_password(db, group.id, "", creator.id)

    assert not group.is_password_protected
    assert group_service.verify_group_password(db, group.id, None)


def test_full_group_rejects_join(db, make_user):
    creator, first, second = make_user(), make_user(), make_user()
    group = _create(db, creator, max_members=2)
    group_service.join_group(db, group.id, first.id)

    with pytest.raises(GroupRuleError):
        group_service.join_group(db, group.id, second.id)


def test_only_creator_deletes_group(db, make_user):
    creator, student = make_user(), make_user()
    group = _create(db, creator)
    group_service.join_group(db, group.id, student.id)
    group_service.promote_to_admin(db, group.id, student.id, creator.id)

    with pytest.raises(GroupPermissionError):
        group_service.delete_group(db, group.id, student.id)

    group_service.delete_group(db, group.id, creator.id)
    with pytest.raises(GroupNotFoundError):
        group_service.get_active_group(db, group.id)
    assert not group_service.is_group_member(db, group.id, student.id)


def test_duplicate_class_group_rejected(db, make_user):
    creator = make_user()
    _create(db, creator)
    with pytest.raises(GroupRuleError):
        _create(db, creator, name="Another name")
