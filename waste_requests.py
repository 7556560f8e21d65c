"""
Waste request lifecycle.

    pending --assign--> processing --complete--> completed

Transitions are conditional updates on the current status, so a request can
only move forward and two disposal workers cannot both claim it.
"""
import logging
import random
from typing import Any, Dict, List

from pymongo import ReturnDocument

import database
from errors import ConflictError, ForbiddenError, NotFoundError
from schemas import CompleteRequest, WasteRequestCreate

logger = logging.getLogger(__name__)

COLLECTION = "waste_requests"
REQUEST_ID_PREFIX = "HWM"
COST_PER_UNIT = 5
RECYCLING_POTENTIAL = {"general": 0.7}
DEFAULT_RECYCLING_POTENTIAL = 0.3

NEWEST_FIRST = [("created_at", -1), ("_id", -1)]


def generate_request_id(year: int) -> str:
    seq = database.next_sequence(f"{COLLECTION}:{year}")
    return f"{REQUEST_ID_PREFIX}-{year}-{seq:03d}"


def environmental_impact(waste_type: str, quantity: float) -> Dict[str, float]:
    # carbon footprint is a placeholder until per-method emission factors exist
    return {
        "carbon_footprint": random.uniform(0, 10),
        "cost_estimate": quantity * COST_PER_UNIT,
        "recycling_potential": RECYCLING_POTENTIAL.get(waste_type, DEFAULT_RECYCLING_POTENTIAL),
    }


def _find(request_id: str) -> Dict[str, Any]:
    oid = database.to_object_id(request_id)
    doc = database.get_collection(COLLECTION).find_one({"_id": oid}) if oid else None
    if not doc:
        raise NotFoundError("Waste request not found")
    return doc


def create_request(payload: WasteRequestCreate, user: Dict[str, Any]) -> Dict[str, Any]:
    now = database.utcnow()
    doc = payload.model_dump()
    doc["department"] = payload.department or user.get("department")
    doc.update(
        {
            "request_id": generate_request_id(now.year),
            "created_by": user["id"],
            "status": "pending",
            "assigned_to": None,
            "created_at": now,
        }
    )
    stored = database.create_document(COLLECTION, doc)
    logger.info(
        "Waste request created",
        extra={"request_id": stored["request_id"], "user_id": user["id"], "waste_type": payload.waste_type},
    )
    return database.serialize_doc(stored)


def list_my_requests(user: Dict[str, Any]) -> List[Dict[str, Any]]:
    docs = database.get_documents(COLLECTION, {"created_by": user["id"]}, sort=NEWEST_FIRST)
    return [database.serialize_doc(d) for d in docs]


def list_pending_requests() -> List[Dict[str, Any]]:
    # in-progress requests stay on the disposal queue until completed
    docs = database.get_documents(
        COLLECTION, {"status": {"$in": ["pending", "processing"]}}, sort=NEWEST_FIRST
    )
    return [database.serialize_doc(d) for d in docs]


def get_request(request_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    doc = _find(request_id)
    if user["id"] not in (doc.get("created_by"), doc.get("assigned_to")):
        raise ForbiddenError("Not authorized to access this request")
    return database.serialize_doc(doc)


def assign_request(request_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    current = _find(request_id)
    now = database.utcnow()
    doc = database.get_collection(COLLECTION).find_one_and_update(
        {"_id": current["_id"], "status": "pending"},
        {"$set": {"status": "processing", "assigned_to": user["id"], "updated_at": now}},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        latest = _find(request_id)
        if latest.get("status") == "processing" and latest.get("assigned_to") == user["id"]:
            return database.serialize_doc(latest)
        logger.warning(
            "Assign rejected",
            extra={"request_id": latest.get("request_id"), "status": latest.get("status"), "user_id": user["id"]},
        )
        raise ConflictError(f"Request is already {latest.get('status')}")
    logger.info("Waste request assigned", extra={"request_id": doc["request_id"], "user_id": user["id"]})
    return database.serialize_doc(doc)


def complete_request(request_id: str, payload: CompleteRequest, user: Dict[str, Any]) -> Dict[str, Any]:
    current = _find(request_id)
    assigned_to = current.get("assigned_to")
    if assigned_to and assigned_to != user["id"]:
        raise ForbiddenError("Not authorized to complete this request")
    if current.get("status") != "processing":
        raise ConflictError(
            "Request must be assigned before it can be completed"
            if current.get("status") == "pending"
            else "Request is already completed"
        )

    now = database.utcnow()
    update = {
        "status": "completed",
        "disposal_method": payload.disposal_method,
        "disposal_location": payload.disposal_location,
        "completed_at": now,
        "updated_at": now,
        "environmental_impact": environmental_impact(current["waste_type"], current["quantity"]),
    }
    doc = database.get_collection(COLLECTION).find_one_and_update(
        {"_id": current["_id"], "status": "processing", "assigned_to": user["id"]},
        {"$set": update},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise ConflictError("Request changed while completing, reload and retry")
    logger.info(
        "Waste request completed",
        extra={"request_id": doc["request_id"], "user_id": user["id"], "disposal_method": payload.disposal_method},
    )
    return database.serialize_doc(doc)
