from fastapi import APIRouter, Depends

from . import models, schemas
from .deps import get_store, require_permission
from .security import Permission
from .services import dashboard_service, status_service
from .store import QueryClient

router = APIRouter(tags=["dashboard"])


@router.get("/admin/dashboard", response_model=schemas.DashboardOut)
def admin_dashboard(store: QueryClient = Depends(get_store), current_user: models.User = Depends(require_permission(Permission.REPORT_VIEW))):
    seedlings = store.select("seedlings", order_by="id")
    batches = store.select("batches", columns=["id", "collected_at"])
    return dashboard_service.summarize(seedlings, batches)


@router.get("/public/summary", response_model=schemas.PublicSummaryOut)
def public_summary(store: QueryClient = Depends(get_store)):
    """Landing-page figures; no login required"""
    seedlings = store.select("seedlings", columns=["id", "species", "count"], order_by="id")
    project = status_service.get_status(store)
    return {
        "total": dashboard_service.total(seedlings),
        "species_stats": dashboard_service.species_stats(seedlings),
        "current_stage": project["current_stage"],
        "timeline": project["timeline"],
    }
