from fastapi import APIRouter, Depends

from . import models, schemas
from .deps import get_current_user, get_store, require_permission
from .security import Permission
from .services import status_service
from .store import QueryClient

router = APIRouter(prefix="/admin/status", tags=["status"])


@router.get("", response_model=schemas.ProjectStatusOut)
def get_project_status(store: QueryClient = Depends(get_store), current_user: models.User = Depends(get_current_user)):
    return status_service.get_status(store)


@router.put("", response_model=schemas.ProjectStatusOut)
def update_project_status(
    status_in: schemas.ProjectStatusIn,
    store: QueryClient = Depends(get_store),
    current_user: models.User = Depends(require_permission(Permission.STATUS_UPDATE)),
):
    return status_service.set_stage(store, status_in.current_stage)
