from fastapi import APIRouter, Depends, HTTPException, Response
from typing import List

from . import models, schemas
from .deps import get_store, require_permission
from .security import Permission
from .store import QueryClient

router = APIRouter(prefix="/admin/partners", tags=["partners"])

PARTNERS = "partners"


@router.post("", response_model=schemas.PartnerOut, status_code=201)
def create_partner(partner_in: schemas.PartnerIn, store: QueryClient = Depends(get_store), current_user: models.User = Depends(require_permission(Permission.PARTNER_CREATE))):
    return store.insert(PARTNERS, partner_in.model_dump())[0]


@router.get("", response_model=List[schemas.PartnerOut])
def list_partners(store: QueryClient = Depends(get_store), current_user: models.User = Depends(require_permission(Permission.PARTNER_VIEW))):
    return store.select(PARTNERS, order_by="name")


@router.put("/{partner_id}", response_model=schemas.PartnerOut)
def update_partner(partner_id: int, partner_in: schemas.PartnerIn, store: QueryClient = Depends(get_store), current_user: models.User = Depends(require_permission(Permission.PARTNER_UPDATE))):
    if store.update(PARTNERS, partner_in.model_dump(), filters={"id": partner_id}) == 0:
        raise HTTPException(status_code=404, detail="Partner not found")
    return store.select_one(PARTNERS, filters={"id": partner_id})


@router.delete("/{partner_id}", status_code=204)
def delete_partner(partner_id: int, store: QueryClient = Depends(get_store), current_user: models.User = Depends(require_permission(Permission.PARTNER_DELETE))):
    # requests keep their rows; their partner reference is cleared by the store
    if store.delete(PARTNERS, filters={"id": partner_id}) == 0:
        raise HTTPException(status_code=404, detail="Partner not found")
    return Response(status_code=204)
