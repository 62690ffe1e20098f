"""
Seedling Request Fulfillment Service
====================================
Moves a partner's seedling request from creation through approval:

- Request creation with ordered line items (no stock movement)
- Approval with per-item conditional stock decrement
- Deletion of pending requests together with their items
- Delivery document for approved requests

Every step goes through the QueryClient, one round-trip at a time. There is
no transaction around a request and its items; a failure part-way leaves the
rows written so far in place and the error propagates to the caller.
"""

import logging
import os
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from ..models import RequestStatus
from ..store import NurseryError, QueryClient

logger = logging.getLogger("nursery_core.fulfillment")

REQUESTS = "seedling_requests"
REQUEST_ITEMS = "seedling_request_items"
SEEDLINGS = "seedlings"
PARTNERS = "partners"

BEST_EFFORT = "best_effort"
ALL_OR_NOTHING = "all_or_nothing"
APPROVAL_POLICIES = (BEST_EFFORT, ALL_OR_NOTHING)


class NotFoundError(NurseryError):
    """Raised when a referenced row does not exist"""
    pass


class InsufficientStockError(NurseryError):
    """Raised when stock cannot cover a request under the all-or-nothing policy"""
    pass


class InvalidOperationError(NurseryError):
    """Raised when operation is not allowed in current state"""
    pass


def get_approval_policy() -> str:
    policy = os.getenv("NURSERY_APPROVAL_POLICY", BEST_EFFORT).strip().lower()
    if policy not in APPROVAL_POLICIES:
        raise RuntimeError(
            f"NURSERY_APPROVAL_POLICY must be one of {', '.join(APPROVAL_POLICIES)}, got '{policy}'"
        )
    return policy


@dataclass
class ApprovalLine:
    item_id: int
    seedling_id: Optional[int]
    quantity: int
    available: Optional[int] = None


@dataclass
class ApprovalResult:
    request_id: int
    status: str
    fulfilled: List[ApprovalLine] = field(default_factory=list)
    skipped: List[ApprovalLine] = field(default_factory=list)


class FulfillmentService:
    """Request workflow over a single store client"""

    def __init__(self, store: QueryClient, policy: Optional[str] = None):
        self.store = store
        self.policy = policy or get_approval_policy()
        if self.policy not in APPROVAL_POLICIES:
            raise ValueError(f"Unknown approval policy: {self.policy}")

    # -------------------------------------------------------------------------
    # reads
    # -------------------------------------------------------------------------

    def get_request(self, request_id: int) -> Dict[str, Any]:
        request = self.store.select_one(REQUESTS, filters={"id": request_id})
        if request is None:
            raise NotFoundError(f"Request {request_id} not found")
        return request

    def get_items(self, request_id: int) -> List[Dict[str, Any]]:
        """Items of a request in insertion order, each with its seedling embedded"""
        return self.store.select(
            REQUEST_ITEMS,
            filters={"request_id": request_id},
            order_by="id",
            embed={SEEDLINGS: ["species", "height_range"]},
        )

    def list_requests(self) -> List[Dict[str, Any]]:
        """All requests, newest request date first, with partner name and items resolved"""
        requests = self.store.select(
            REQUESTS, order_by="request_date", descending=True, embed={PARTNERS: ["name"]}
        )
        items = self.store.select(REQUEST_ITEMS, order_by="id", embed={SEEDLINGS: ["species", "height_range"]})

        by_request: Dict[int, List[Dict[str, Any]]] = {}
        for item in items:
            by_request.setdefault(item["request_id"], []).append(item)

        return [self._resolve(request, by_request.get(request["id"], [])) for request in requests]

    def get_request_detail(self, request_id: int) -> Dict[str, Any]:
        request = self.store.select_one(REQUESTS, filters={"id": request_id}, embed={PARTNERS: ["name"]})
        if request is None:
            raise NotFoundError(f"Request {request_id} not found")
        return self._resolve(request, self.get_items(request_id))

    @staticmethod
    def _resolve(request: Dict[str, Any], items: List[Dict[str, Any]]) -> Dict[str, Any]:
        partner = request.pop(PARTNERS, None)
        resolved = dict(request)
        resolved["partner_name"] = partner["name"] if partner else None
        resolved["items"] = []
        for item in items:
            seedling = item.get(SEEDLINGS)
            resolved["items"].append({
                "id": item["id"],
                "seedling_id": item["seedling_id"],
                "quantity": item["quantity"],
                "species": seedling["species"] if seedling else None,
                "height_range": seedling["height_range"] if seedling else None,
            })
        return resolved

    # -------------------------------------------------------------------------
    # create
    # -------------------------------------------------------------------------

    def create_request(
        self,
        partner_id: int,
        request_date: date,
        items: Sequence[Dict[str, int]],
        note: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a pending request and its line items.

        Args:
            partner_id: Partner receiving the seedlings
            request_date: Date of the request
            items: Ordered (seedling_id, quantity) pairs, quantity >= 1
            note: Free text

        Returns:
            The stored request row with its items

        Raises:
            NotFoundError: partner or a seedling does not exist
            InvalidOperationError: no items, or a quantity below one
            StoreError: a round-trip failed (items written so far remain)
        """
        if not items:
            raise InvalidOperationError("A request needs at least one item")
        for item in items:
            if int(item["quantity"]) < 1:
                raise InvalidOperationError("Item quantity must be at least 1")

        if self.store.select_one(PARTNERS, filters={"id": partner_id}, columns=["id"]) is None:
            raise NotFoundError(f"Partner {partner_id} not found")

        seedling_ids = {item["seedling_id"] for item in items}
        found = {row["id"] for row in self.store.select(SEEDLINGS, columns=["id"], filters={"id": seedling_ids})}
        missing = sorted(seedling_ids - found)
        if missing:
            raise NotFoundError(f"Seedling(s) not found: {', '.join(str(m) for m in missing)}")

        request = self.store.insert(REQUESTS, {
            "partner_id": partner_id,
            "request_date": request_date,
            "note": note,
            "status": RequestStatus.PENDING.value,
        })[0]

        for position, item in enumerate(items, start=1):
            try:
                self.store.insert(REQUEST_ITEMS, {
                    "request_id": request["id"],
                    "seedling_id": item["seedling_id"],
                    "quantity": int(item["quantity"]),
                })
            except NurseryError:
                logger.error(
                    "Request %s left partial: item %s of %s could not be stored",
                    request["id"], position, len(items)
                )
                raise

        logger.info("Created request %s for partner %s with %s item(s)", request["id"], partner_id, len(items))
        return self.get_request_detail(request["id"])

    # -------------------------------------------------------------------------
    # approve
    # -------------------------------------------------------------------------

    def approve_request(self, request_id: int) -> ApprovalResult:
        """
        Approve a pending request and take its quantities out of stock.

        The request is claimed first with a conditional status update
        (status = pending), so of two concurrent approvals only one moves
        stock. Each item is then decremented with a single conditional
        update (count >= quantity), so stock never goes negative. Under the
        best-effort policy items that cannot be covered are skipped and the
        request is approved anyway. Under all-or-nothing a shortfall raises
        InsufficientStockError and the request goes back to pending.
        """
        request = self.get_request(request_id)
        if request["status"] != RequestStatus.PENDING.value:
            raise InvalidOperationError(f"Request {request_id} is already {request['status']}")

        items = self.store.select(REQUEST_ITEMS, filters={"request_id": request_id}, order_by="id")
        result = ApprovalResult(request_id=request_id, status=request["status"])

        if self.policy == ALL_OR_NOTHING:
            self._check_all_available(items)

        self._claim(request_id)
        result.status = RequestStatus.APPROVED.value

        for item in items:
            line = ApprovalLine(item_id=item["id"], seedling_id=item["seedling_id"], quantity=item["quantity"])
            taken = item["seedling_id"] is not None and self.store.decrement(
                SEEDLINGS, "count", item["quantity"], filters={"id": item["seedling_id"]}
            )
            if taken:
                result.fulfilled.append(line)
                continue

            line.available = self._current_count(item["seedling_id"])
            if self.policy == ALL_OR_NOTHING:
                self._restore(result.fulfilled)
                self._release(request_id)
                raise InsufficientStockError(
                    f"Insufficient stock for seedling {item['seedling_id']}. "
                    f"Available: {line.available}, Requested: {item['quantity']}"
                )
            logger.warning(
                "Request %s: skipped seedling %s (requested %s, available %s)",
                request_id, item["seedling_id"], item["quantity"], line.available
            )
            result.skipped.append(line)

        logger.info(
            "Approved request %s: %s fulfilled, %s skipped",
            request_id, len(result.fulfilled), len(result.skipped)
        )
        return result

    def _claim(self, request_id: int) -> None:
        claimed = self.store.update(
            REQUESTS,
            {"status": RequestStatus.APPROVED.value, "approved_at": datetime.utcnow()},
            filters={"id": request_id, "status": RequestStatus.PENDING.value},
        )
        if claimed == 0:
            logger.warning("Request %s was approved or removed by another client", request_id)
            raise InvalidOperationError(f"Request {request_id} is no longer pending")

    def _release(self, request_id: int) -> None:
        self.store.update(
            REQUESTS,
            {"status": RequestStatus.PENDING.value, "approved_at": None},
            filters={"id": request_id},
        )

    def _current_count(self, seedling_id: Optional[int]) -> Optional[int]:
        if seedling_id is None:
            return None
        row = self.store.select_one(SEEDLINGS, filters={"id": seedling_id}, columns=["id", "count"])
        return row["count"] if row else None

    def _check_all_available(self, items: List[Dict[str, Any]]) -> None:
        needed: "OrderedDict[Optional[int], int]" = OrderedDict()
        for item in items:
            needed[item["seedling_id"]] = needed.get(item["seedling_id"], 0) + item["quantity"]

        for seedling_id, quantity in needed.items():
            available = self._current_count(seedling_id)
            if available is None or available < quantity:
                raise InsufficientStockError(
                    f"Insufficient stock for seedling {seedling_id}. "
                    f"Available: {available}, Requested: {quantity}"
                )

    def _restore(self, lines: List[ApprovalLine]) -> None:
        for line in reversed(lines):
            self.store.increment(SEEDLINGS, "count", line.quantity, filters={"id": line.seedling_id})
        if lines:
            logger.warning("Restored stock for %s item(s) after a failed approval", len(lines))

    # -------------------------------------------------------------------------
    # delete
    # -------------------------------------------------------------------------

    def delete_request(self, request_id: int) -> None:
        """Delete a pending request; its items go first"""
        request = self.get_request(request_id)
        if request["status"] != RequestStatus.PENDING.value:
            raise InvalidOperationError("Only pending requests can be deleted")
        self.store.delete(REQUEST_ITEMS, filters={"request_id": request_id})
        self.store.delete(REQUESTS, filters={"id": request_id})
        logger.info("Deleted request %s", request_id)

    # -------------------------------------------------------------------------
    # delivery document
    # -------------------------------------------------------------------------

    def build_delivery_document(self, request_id: int) -> Dict[str, Any]:
        """Printable content of an approved request's delivery note"""
        detail = self.get_request_detail(request_id)
        if detail["status"] != RequestStatus.APPROVED.value:
            raise InvalidOperationError("Delivery documents are only issued for approved requests")

        lines = [
            {
                "species": item["species"] or "-",
                "height_range": item["height_range"] or "-",
                "quantity": item["quantity"],
            }
            for item in detail["items"]
        ]
        return {
            "request_id": detail["id"],
            "partner_name": detail["partner_name"] or "-",
            "request_date": detail["request_date"],
            "note": detail["note"],
            "lines": lines,
            "total_quantity": sum(line["quantity"] for line in lines),
        }
