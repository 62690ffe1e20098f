from fastapi import APIRouter, Depends, HTTPException, Query, Response

from . import models
from .deps import get_store, require_permission
from .security import Permission
from .services import export_service
from .store import QueryClient

router = APIRouter(prefix="/admin/export", tags=["export"])

# entity -> (relation, order column, descending)
EXPORT_ENTITIES = {
    "seedlings": ("seedlings", "id", False),
    "batches": ("batches", "collected_at", True),
    "partners": ("partners", "name", False),
    "logs": ("nursery_logs", "log_date", True),
    "requests": ("seedling_requests", "request_date", True),
    "zones": ("nursery_zones", "zone_code", False),
}


@router.get("/{entity}")
def export_entity(
    entity: str,
    format: str = Query("csv"),
    store: QueryClient = Depends(get_store),
    current_user: models.User = Depends(require_permission(Permission.REPORT_EXPORT)),
):
    if entity not in EXPORT_ENTITIES:
        raise HTTPException(status_code=404, detail=f"Unknown export entity '{entity}'")
    fmt = format.lower()
    if fmt not in export_service.EXPORT_FORMATS:
        raise HTTPException(status_code=400, detail="Only csv and xlsx exports are supported")

    relation, order_by, descending = EXPORT_ENTITIES[entity]
    records = store.select(relation, order_by=order_by, descending=descending)

    if fmt == "csv":
        content = export_service.to_csv(records).encode("utf-8")
    else:
        content = export_service.to_xlsx(records, sheet_name=entity)

    filename = export_service.export_filename(entity, fmt)
    return Response(
        content=content,
        media_type=export_service.MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
