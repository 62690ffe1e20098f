"""
Services package initialization.
Business logic layer for nursery record-keeping.
"""

from ..store import NurseryError, StoreError
from .fulfillment_service import (
    FulfillmentService,
    ApprovalResult,
    ApprovalLine,
    NotFoundError,
    InsufficientStockError,
    InvalidOperationError,
    get_approval_policy,
)
from .status_service import (
    ProjectStatusNotInitialized,
    build_timeline,
    get_status,
    set_stage,
    initialize_project_status,
)
from . import dashboard_service, export_service

__all__ = [
    'NurseryError',
    'StoreError',
    'FulfillmentService',
    'ApprovalResult',
    'ApprovalLine',
    'NotFoundError',
    'InsufficientStockError',
    'InvalidOperationError',
    'get_approval_policy',
    'ProjectStatusNotInitialized',
    'build_timeline',
    'get_status',
    'set_stage',
    'initialize_project_status',
    'dashboard_service',
    'export_service',
]
