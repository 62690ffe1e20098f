from fastapi import APIRouter, Depends, HTTPException, Query, Response
from typing import List, Optional

from . import models, schemas
from .deps import ensure_exists, get_store, require_permission
from .security import Permission
from .store import QueryClient

router = APIRouter(prefix="/admin/seedlings", tags=["seedlings"])

SEEDLINGS = "seedlings"


def filter_seedlings(
    rows: List[dict],
    q: Optional[str] = None,
    species: Optional[List[str]] = None,
    height_range: Optional[List[str]] = None,
    batch_id: Optional[int] = None,
    zone_id: Optional[int] = None,
) -> List[dict]:
    """Search-panel filtering applied to the fetched collection"""
    needle = q.strip().lower() if q else ""
    result = []
    for row in rows:
        if needle and needle not in row["species"].lower() and needle not in row["height_range"].lower():
            continue
        if species and row["species"] not in species:
            continue
        if height_range and row["height_range"] not in height_range:
            continue
        if batch_id is not None and row["batch_id"] != batch_id:
            continue
        if zone_id is not None and row["zone_id"] != zone_id:
            continue
        result.append(row)
    return result


def _check_references(store: QueryClient, seedling_in: schemas.SeedlingIn):
    ensure_exists(store, "batches", seedling_in.batch_id, "Batch")
    ensure_exists(store, "nursery_zones", seedling_in.zone_id, "Zone")


@router.get("", response_model=List[schemas.SeedlingOut])
def list_seedlings(
    q: Optional[str] = None,
    species: Optional[List[str]] = Query(None),
    height_range: Optional[List[str]] = Query(None),
    batch_id: Optional[int] = None,
    zone_id: Optional[int] = None,
    store: QueryClient = Depends(get_store),
    current_user: models.User = Depends(require_permission(Permission.SEEDLING_VIEW)),
):
    rows = store.select(SEEDLINGS, order_by="id")
    return filter_seedlings(rows, q, species, height_range, batch_id, zone_id)


@router.post("", response_model=schemas.SeedlingOut, status_code=201)
def create_seedling(
    seedling_in: schemas.SeedlingIn,
    store: QueryClient = Depends(get_store),
    current_user: models.User = Depends(require_permission(Permission.SEEDLING_CREATE)),
):
    _check_references(store, seedling_in)
    return store.insert(SEEDLINGS, seedling_in.model_dump())[0]


@router.put("/{seedling_id}", response_model=schemas.SeedlingOut)
def update_seedling(
    seedling_id: int,
    seedling_in: schemas.SeedlingIn,
    store: QueryClient = Depends(get_store),
    current_user: models.User = Depends(require_permission(Permission.SEEDLING_UPDATE)),
):
    _check_references(store, seedling_in)
    if store.update(SEEDLINGS, seedling_in.model_dump(), filters={"id": seedling_id}) == 0:
        raise HTTPException(status_code=404, detail="Seedling not found")
    return store.select_one(SEEDLINGS, filters={"id": seedling_id})


@router.delete("/{seedling_id}", status_code=204)
def delete_seedling(
    seedling_id: int,
    store: QueryClient = Depends(get_store),
    current_user: models.User = Depends(require_permission(Permission.SEEDLING_DELETE)),
):
    if store.delete(SEEDLINGS, filters={"id": seedling_id}) == 0:
        raise HTTPException(status_code=404, detail="Seedling not found")
    return Response(status_code=204)
