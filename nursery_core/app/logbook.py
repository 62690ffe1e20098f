from datetime import date
from fastapi import APIRouter, Depends, HTTPException
from typing import List, Optional

from . import models, schemas
from .deps import ensure_exists, get_store, require_permission
from .security import Permission
from .store import QueryClient

router = APIRouter(prefix="/admin/logbook", tags=["logbook"])

LOGS = "nursery_logs"


@router.post("", response_model=schemas.LogOut, status_code=201)
def create_log(log_in: schemas.LogIn, store: QueryClient = Depends(get_store), current_user: models.User = Depends(require_permission(Permission.LOG_CREATE))):
    ensure_exists(store, "batches", log_in.batch_id, "Batch")
    ensure_exists(store, "nursery_zones", log_in.zone_id, "Zone")
    return store.insert(LOGS, log_in.model_dump())[0]


@router.get("", response_model=List[schemas.LogOut])
def list_logs(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    store: QueryClient = Depends(get_store),
    current_user: models.User = Depends(require_permission(Permission.LOG_VIEW)),
):
    if date_from and date_to and date_from > date_to:
        raise HTTPException(status_code=400, detail="date_from must not be after date_to")
    rows = store.select(LOGS, order_by="log_date", descending=True)
    if date_from:
        rows = [r for r in rows if r["log_date"] >= date_from]
    if date_to:
        rows = [r for r in rows if r["log_date"] <= date_to]
    return rows
