"""
Project lifecycle stage, stored as the single row id = 1 of project_status.

Reads never create the row. A store without it was not initialised and every
status operation raises ProjectStatusNotInitialized until
initialize_project_status() (or scripts/init_nursery.py) has run.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models import STAGE_LABELS, ProjectStage
from ..store import NurseryError, QueryClient

logger = logging.getLogger("nursery_core.status")

PROJECT_STATUS = "project_status"
STATUS_ROW_ID = 1
STAGES = list(ProjectStage)


class ProjectStatusNotInitialized(NurseryError):
    """Raised when the project status row is missing or unreadable"""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message or "Project status is not initialised; run scripts/init_nursery.py to create it"
        )


def build_timeline(current_stage: Optional[ProjectStage]) -> List[Dict[str, Any]]:
    """Every stage in order, marked done / doing / next relative to the current one"""
    current = STAGES.index(ProjectStage(current_stage)) if current_stage else -1
    timeline = []
    for position, stage in enumerate(STAGES):
        if position < current:
            state = "done"
        elif position == current:
            state = "doing"
        else:
            state = "next"
        timeline.append({"key": stage, "label": STAGE_LABELS[stage], "state": state})
    return timeline


def _present(row: Dict[str, Any]) -> Dict[str, Any]:
    try:
        stage = ProjectStage(row["current_stage"])
    except ValueError:
        logger.error("Project status row holds unknown stage %r", row["current_stage"])
        raise ProjectStatusNotInitialized(
            f"Project status holds an unknown stage '{row['current_stage']}'; set a valid stage to repair it"
        )
    return {
        "current_stage": stage,
        "label": STAGE_LABELS[stage],
        "updated_at": row.get("updated_at"),
        "timeline": build_timeline(stage),
    }


def get_status(store: QueryClient) -> Dict[str, Any]:
    row = store.select_one(PROJECT_STATUS, filters={"id": STATUS_ROW_ID})
    if row is None:
        raise ProjectStatusNotInitialized()
    return _present(row)


def set_stage(store: QueryClient, stage: ProjectStage) -> Dict[str, Any]:
    stage = ProjectStage(stage)
    affected = store.update(
        PROJECT_STATUS,
        {"current_stage": stage.value, "updated_at": datetime.utcnow()},
        filters={"id": STATUS_ROW_ID},
    )
    if affected == 0:
        raise ProjectStatusNotInitialized()
    logger.info("Project stage set to %s", stage.value)
    return get_status(store)


def initialize_project_status(
    store: QueryClient, stage: ProjectStage = ProjectStage.SEED_COLLECTION
) -> Dict[str, Any]:
    """Create the status row if it is missing; an existing row is left as is"""
    if store.select_one(PROJECT_STATUS, filters={"id": STATUS_ROW_ID}, columns=["id"]) is None:
        store.insert(PROJECT_STATUS, {
            "id": STATUS_ROW_ID,
            "current_stage": ProjectStage(stage).value,
            "updated_at": datetime.utcnow(),
        })
        logger.info("Project status initialised at %s", ProjectStage(stage).value)
    return get_status(store)
