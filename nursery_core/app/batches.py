from fastapi import APIRouter, Depends
from typing import List

from . import models, schemas
from .deps import get_store, require_permission
from .security import Permission
from .store import QueryClient

router = APIRouter(prefix="/admin/batches", tags=["batches"])


@router.post("", response_model=schemas.BatchOut, status_code=201)
def create_batch(batch_in: schemas.BatchIn, store: QueryClient = Depends(get_store), current_user: models.User = Depends(require_permission(Permission.BATCH_CREATE))):
    return store.insert("batches", batch_in.model_dump())[0]


@router.get("", response_model=List[schemas.BatchOut])
def list_batches(store: QueryClient = Depends(get_store), current_user: models.User = Depends(require_permission(Permission.BATCH_VIEW))):
    return store.select("batches", order_by="collected_at", descending=True)
