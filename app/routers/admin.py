from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.cleanup_run import CleanupRun
from app.models.user import User
from app.routers.deps import get_store, require_platform_admin
from app.schemas.cleanup import CleanupResultRead, CleanupRunRead, RetentionPreviewRead
from app.services.retention import ConfigurationError, RetentionSweeper, preview_retention, recent_cleanup_runs

router = APIRouter(prefix="/admin/cleanup", tags=["admin"])


@router.post("", response_model=CleanupResultRead)
def trigger_cleanup(
    db: Session = Depends(get_db),
    store=Depends(get_store),
    admin: User = Depends(require_platform_admin),
) -> CleanupResultRead:
    result = RetentionSweeper(db, store).run_cleanup()
    return CleanupResultRead.model_validate(result)


@router.get("/runs", response_model=list[CleanupRunRead])
def list_runs(
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
    admin: User = Depends(require_platform_admin),
) -> list[CleanupRun]:
    return recent_cleanup_runs(db, limit=limit)


@router.get("/preview", response_model=RetentionPreviewRead)
def preview(db: Session = Depends(get_db), admin: User = Depends(require_platform_admin)) -> RetentionPreviewRead:
    try:
        return RetentionPreviewRead.model_validate(preview_retention(db))
    except ConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
