from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.group import ClassGroup
from app.models.group_member import GroupMember
from app.models.user import User
from app.routers.deps import get_current_user
from app.schemas.group import GroupCreate, GroupJoin, GroupPasswordUpdate, GroupRead, GroupUpdate, MemberRead
from app.services import groups as group_service
from app.services.groups import GroupNotFoundError, GroupPasswordError, GroupPermissionError, GroupRuleError

router = APIRouter(prefix="/groups", tags=["groups"])


def to_http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, GroupNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, GroupPermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, GroupPasswordError):
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


GROUP_ERRORS = (GroupNotFoundError, GroupPermissionError, GroupPasswordError, GroupRuleError)


@router.post("", response_model=GroupRead, status_code=status.HTTP_201_CREATED)
def create_group(
    payload: GroupCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ClassGroup:
    try:
        return group_service.create_group(
            db,
            creator_id=current_user.id,
            name=payload.name,
            year=payload.year,
            section=payload.section,
            subject=payload.subject,
            description=payload.description,
            password=payload.password,
            max_members=payload.max_members,
        )
    except GROUP_ERRORS as exc:
        raise to_http_error(exc) from exc


@router.get("/{group_id}", response_model=GroupRead)
def get_group(group_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)) -> ClassGroup:
    try:
        return group_service.get_active_group(db, group_id)
    except GROUP_ERRORS as exc:
        raise to_http_error(exc) from exc


@router.patch("/{group_id}", response_model=GroupRead)
def update_group(
    group_id: str,
    payload: GroupUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ClassGroup:
    try:
        return group_service.update_group_details(
            db, group_id, current_user.id, name=payload.name, description=payload.description
        )
    except GROUP_ERRORS as exc:
        raise to_http_error(exc) from exc


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_group(group_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)) -> None:
    try:
        group_service.delete_group(db, group_id, current_user.id)
    except GROUP_ERRORS as exc:
        raise to_http_error(exc) from exc
    return None


@router.put("/{group_id}/password", response_model=GroupRead)
def set_password(
    group_id: str,
    payload: GroupPasswordUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ClassGroup:
    try:
        return group_service.set_group_password(db, group_id, payload.password, current_user.id)
    except GROUP_ERRORS as exc:
        raise to_http_error(exc) from exc


@router.post("/{group_id}/join", response_model=MemberRead)
def join_group(
    group_id: str,
    payload: GroupJoin,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GroupMember:
    try:
        return group_service.join_group(db, group_id, current_user.id, payload.password)
    except GROUP_ERRORS as exc:
        raise to_http_error(exc) from exc


@router.get("/{group_id}/members", response_model=list[MemberRead])
def list_members(
    group_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[GroupMember]:
    try:
        group_service.get_active_group(db, group_id)
    except GROUP_ERRORS as exc:
        raise to_http_error(exc) from exc
    if not group_service.is_group_member(db, group_id, current_user.id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a member of this group")
    return group_service.list_members(db, group_id)


@router.post("/{group_id}/members/{user_id}/promote", response_model=MemberRead)
def promote_member(
    group_id: str,
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GroupMember:
    try:
        return group_service.promote_to_admin(db, group_id, user_id, current_user.id)
    except GROUP_ERRORS as exc:
        raise to_http_error(exc) from exc


@router.post("/{group_id}/members/{user_id}/demote", response_model=MemberRead)
def demote_member(
    group_id: str,
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GroupMember:
    try:
        return group_service.demote_admin(db, group_id, user_id, current_user.id)
    except GROUP_ERRORS as exc:
        raise to_http_error(exc) from exc


@router.delete("/{group_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_member(
    group_id: str,
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> None:
    try:
        group_service.remove_member(db, group_id, user_id, current_user.id)
    except GROUP_ERRORS as exc:
        raise to_http_error(exc) from exc
    return None
