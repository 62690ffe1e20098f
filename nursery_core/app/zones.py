from fastapi import APIRouter, Depends
from typing import List

from . import models, schemas
from .deps import get_store, require_permission
from .security import Permission
from .store import QueryClient

router = APIRouter(prefix="/admin/zones", tags=["zones"])


@router.post("", response_model=schemas.ZoneOut, status_code=201)
def create_zone(zone_in: schemas.ZoneIn, store: QueryClient = Depends(get_store), current_user: models.User = Depends(require_permission(Permission.ZONE_CREATE))):
    return store.insert("nursery_zones", zone_in.model_dump())[0]


@router.get("", response_model=List[schemas.ZoneOut])
def list_zones(store: QueryClient = Depends(get_store), current_user: models.User = Depends(require_permission(Permission.ZONE_VIEW))):
    return store.select("nursery_zones", order_by="zone_code")
