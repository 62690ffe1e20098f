"""
Seedling Request API Router
===========================
Request-fulfillment workflow for distribution partners:
- Request creation with line items
- Approval with stock deduction
- Deletion of pending requests
- Printable delivery note for approved requests
"""

from dataclasses import asdict
from pathlib import Path
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from .. import models, schemas
from ..deps import get_store, require_permission
from ..security import Permission
from ..services.fulfillment_service import (
    FulfillmentService, NotFoundError, InvalidOperationError, InsufficientStockError
)
from ..store import QueryClient

router = APIRouter(prefix="/admin/requests", tags=["Requests"])

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parents[1] / "templates"))


def get_fulfillment(store: QueryClient = Depends(get_store)) -> FulfillmentService:
    return FulfillmentService(store)


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, InsufficientStockError):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("", response_model=List[schemas.RequestOut])
def list_requests(
    service: FulfillmentService = Depends(get_fulfillment),
    current_user: models.User = Depends(require_permission(Permission.REQUEST_VIEW)),
):
    return service.list_requests()


@router.post("", response_model=schemas.RequestOut, status_code=201)
def create_request(
    data: schemas.RequestCreate,
    service: FulfillmentService = Depends(get_fulfillment),
    current_user: models.User = Depends(require_permission(Permission.REQUEST_CREATE)),
):
    try:
        return service.create_request(
            partner_id=data.partner_id,
            request_date=data.request_date,
            items=[item.model_dump() for item in data.items],
            note=data.note,
        )
    except (NotFoundError, InvalidOperationError) as e:
        raise _http_error(e)


@router.get("/{request_id}", response_model=schemas.RequestOut)
def get_request(
    request_id: int,
    service: FulfillmentService = Depends(get_fulfillment),
    current_user: models.User = Depends(require_permission(Permission.REQUEST_VIEW)),
):
    try:
        return service.get_request_detail(request_id)
    except NotFoundError as e:
        raise _http_error(e)


@router.post("/{request_id}/approve", response_model=schemas.ApprovalOut)
def approve_request(
    request_id: int,
    service: FulfillmentService = Depends(get_fulfillment),
    current_user: models.User = Depends(require_permission(Permission.REQUEST_APPROVE)),
):
    """
    Approve a pending request and deduct stock.

    Items whose seedling no longer has enough stock are reported under
    `skipped`; the request is approved either way unless the
    all-or-nothing policy is configured.
    """
    try:
        return asdict(service.approve_request(request_id))
    except (NotFoundError, InvalidOperationError, InsufficientStockError) as e:
        raise _http_error(e)


@router.delete("/{request_id}", status_code=204)
def delete_request(
    request_id: int,
    service: FulfillmentService = Depends(get_fulfillment),
    current_user: models.User = Depends(require_permission(Permission.REQUEST_DELETE)),
):
    try:
        service.delete_request(request_id)
    except (NotFoundError, InvalidOperationError) as e:
        raise _http_error(e)
    return Response(status_code=204)


@router.get("/{request_id}/delivery-note.json", response_model=schemas.DeliveryDocumentOut)
def delivery_note_data(
    request_id: int,
    service: FulfillmentService = Depends(get_fulfillment),
    current_user: models.User = Depends(require_permission(Permission.REQUEST_VIEW)),
):
    try:
        return service.build_delivery_document(request_id)
    except (NotFoundError, InvalidOperationError) as e:
        raise _http_error(e)


@router.get("/{request_id}/delivery-note", response_class=HTMLResponse)
def delivery_note(
    request: Request,
    request_id: int,
    service: FulfillmentService = Depends(get_fulfillment),
    current_user: models.User = Depends(require_permission(Permission.REQUEST_VIEW)),
):
    """Printable delivery note; the page opens the print dialog when loaded"""
    try:
        document = service.build_delivery_document(request_id)
    except (NotFoundError, InvalidOperationError) as e:
        raise _http_error(e)
    return templates.TemplateResponse(request, "delivery_note.html", {"doc": document})
