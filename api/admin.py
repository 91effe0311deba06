"""
Admin panel API.

JSON endpoints over the content store for the admin panel: FAQ, SOP,
stock, buyers, blacklist, moderators, promo, product sheets and claims,
plus bot statistics. Every route requires the shared X-Admin-Password
header. Writes go straight to the store; the knowledge store and the
hybrid handler read the same records on their next lookup.
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel, Field, field_validator
from config import keywords
from database.content_store import ContentStore
from utils.error_handler import ContentStoreError

logger = logging.getLogger(__name__)


def get_context(request: Request):
    return request.app.state.context


def require_admin(request: Request, x_admin_password: Optional[str] = Header(None)):
    ctx = get_context(request)
    if not x_admin_password or x_admin_password != ctx.admin_password:
        logger.warning(f"⚠️ Rejected admin API call to {request.url.path}")
        raise HTTPException(status_code=401, detail="Unauthorized")
    return ctx


def get_store(ctx=Depends(require_admin)) -> ContentStore:
    return ctx.store


router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# ----------------------------------------------------------------------
# Payloads
# ----------------------------------------------------------------------

def _lower_list(values: List[str]) -> List[str]:
    cleaned = [v.strip().lower() for v in values if v and v.strip()]
    if not cleaned:
        raise ValueError("at least one non-empty value is required")
    return cleaned


def _strip_list(values: List[str]) -> List[str]:
    cleaned = [v.strip() for v in values if v and v.strip()]
    if not cleaned:
        raise ValueError("at least one non-empty value is required")
    return cleaned


class FaqPayload(BaseModel):
    question: Optional[str] = None
    keyword: List[str] = Field(..., min_length=1)
    response: List[str] = Field(..., min_length=1)

    @field_validator("keyword")
    @classmethod
    def clean_keywords(cls, value: List[str]) -> List[str]:
        return _lower_list(value)

    @field_validator("response")
    @classmethod
    def clean_responses(cls, value: List[str]) -> List[str]:
        return _strip_list(value)


class SopPayload(BaseModel):
    title: Optional[str] = None
    trigger: List[str] = Field(..., min_length=1)
    response: List[str] = Field(..., min_length=1)

    @field_validator("trigger")
    @classmethod
    def clean_triggers(cls, value: List[str]) -> List[str]:
        return _lower_list(value)

    @field_validator("response")
    @classmethod
    def clean_responses(cls, value: List[str]) -> List[str]:
        return _strip_list(value)


class StockPayload(BaseModel):
    product: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=0)
    price: float = Field(..., ge=0)
    status: str = "available"


class Transaction(BaseModel):
    apk: str
    email: str
    durasi: str
    dateGiven: str
    exp: str
    invite: Optional[str] = None

    @field_validator("apk")
    @classmethod
    def valid_apk(cls, value: str) -> str:
        apk = value.strip().lower()
        if apk not in keywords.VALID_APK:
            raise ValueError(f"unknown apk: {value}")
        return apk


class BuyerPayload(BaseModel):
    user: str = Field(..., min_length=1)
    data: List[Transaction] = Field(default_factory=list)


class BlacklistPayload(BaseModel):
    number: str = Field(..., pattern=r"^\d{8,15}$")
    reason: str = ""


class ModeratorPayload(BaseModel):
    number: str = Field(..., pattern=r"^\d{8,15}$")
    name: str = Field(..., min_length=1)
    active: bool = True


class PromoPayload(BaseModel):
    banner: str = Field(..., min_length=1)
    active: bool = True


class ProductSheetPayload(BaseModel):
    text: str = Field(..., min_length=1)


def _buyer_record(payload: BuyerPayload) -> Dict[str, Any]:
    """Buyer record with the per-apk statistik summary rebuilt from its transactions"""
    statistik: Dict[str, Any] = {}
    for tx in payload.data:
        entry = statistik.setdefault(tx.apk, {"total": 0, "rincian": {}})
        entry["total"] += 1
        entry["rincian"][tx.durasi] = entry["rincian"].get(tx.durasi, 0) + 1
    return {
        "user": payload.user,
        "statistik": statistik,
        "data": [tx.model_dump() for tx in payload.data],
    }


# ----------------------------------------------------------------------
# Generic record CRUD
# ----------------------------------------------------------------------

RECORD_PAYLOADS = {
    "faq": FaqPayload,
    "sop": SopPayload,
    "stock": StockPayload,
    "buyers": BuyerPayload,
    "blacklist": BlacklistPayload,
    "moderators": ModeratorPayload,
}


def _to_record(collection: str, payload: BaseModel) -> Dict[str, Any]:
    if collection == "buyers":
        return _buyer_record(payload)
    record = payload.model_dump()
    if collection == "stock":
        record["lastUpdated"] = datetime.now().isoformat()
    elif collection == "blacklist":
        record["date"] = datetime.now().isoformat()
    elif collection == "moderators":
        record["addedBy"] = "admin_panel"
        record["addedDate"] = datetime.now().isoformat()
    return record


def _register_crud(collection: str, payload_model):
    """List / get / create / update / delete routes for one collection"""

    @router.get(f"/{collection}", name=f"list_{collection}")
    def list_records(store: ContentStore = Depends(get_store)):
        return store.all_records(collection)

    @router.get(f"/{collection}/{{record_id}}", name=f"get_{collection}")
    def get_record(record_id: int, store: ContentStore = Depends(get_store)):
        record = store.get_record(collection, record_id)
        if record is None:
            raise HTTPException(status_code=404, detail=f"{collection} record {record_id} not found")
        return record

    @router.post(f"/{collection}", status_code=201, name=f"create_{collection}")
    def create_record(payload: payload_model, store: ContentStore = Depends(get_store)):
        record = store.add_record(collection, _to_record(collection, payload))
        logger.info(f"✓ Admin panel added {collection} record {record['id']}")
        return record

    @router.put(f"/{collection}/{{record_id}}", name=f"update_{collection}")
    def update_record(record_id: int, payload: payload_model, store: ContentStore = Depends(get_store)):
        record = store.update_record(collection, record_id, _to_record(collection, payload))
        if record is None:
            raise HTTPException(status_code=404, detail=f"{collection} record {record_id} not found")
        return record

    @router.delete(f"/{collection}/{{record_id}}", name=f"delete_{collection}")
    def delete_record(record_id: int, store: ContentStore = Depends(get_store)):
        if not store.delete_record(collection, record_id):
            raise HTTPException(status_code=404, detail=f"{collection} record {record_id} not found")
        logger.info(f"🗑️ Admin panel deleted {collection} record {record_id}")
        return {"status": "deleted", "id": record_id}


for _collection, _payload in RECORD_PAYLOADS.items():
    _register_crud(_collection, _payload)


# ----------------------------------------------------------------------
# Promo
# ----------------------------------------------------------------------

@router.get("/promo")
def get_promo(store: ContentStore = Depends(get_store)):
    return store.load_document("promo", {}) or {}


@router.put("/promo")
def save_promo(payload: PromoPayload, store: ContentStore = Depends(get_store)):
    store.save_document("promo", payload.model_dump())
    return payload.model_dump()


# ----------------------------------------------------------------------
# Product sheets
# ----------------------------------------------------------------------

@router.get("/products")
def list_products(store: ContentStore = Depends(get_store)):
    return {"products": store.list_product_names()}


@router.get("/products/{name}")
def get_product(name: str, store: ContentStore = Depends(get_store)):
    try:
        text = store.load_product_sheet(name)
    except ContentStoreError as e:
        raise HTTPException(status_code=400, detail=e.message)
    if text is None:
        raise HTTPException(status_code=404, detail=f"Product {name} not found")
    return {"name": name, "text": text}


@router.put("/products/{name}")
def save_product(name: str, payload: ProductSheetPayload, store: ContentStore = Depends(get_store)):
    try:
        store.save_product_sheet(name, payload.text)
    except ContentStoreError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return {"name": name.strip().lower(), "text": payload.text}


@router.delete("/products/{name}")
def delete_product(name: str, store: ContentStore = Depends(get_store)):
    try:
        deleted = store.delete_product_sheet(name)
    except ContentStoreError as e:
        raise HTTPException(status_code=400, detail=e.message)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Product {name} not found")
    return {"status": "deleted", "name": name}


# ----------------------------------------------------------------------
# Claims and attendance
# ----------------------------------------------------------------------

@router.get("/claims")
def list_claims(claim_type: Optional[str] = None, store: ContentStore = Depends(get_store)):
    claims = store.all_records("log_claim")
    if claim_type:
        claims = [c for c in claims if c.get("type") == claim_type]
    return claims


@router.post("/claims/{record_id}/resolve")
def resolve_claim(record_id: int, store: ContentStore = Depends(get_store)):
    """Replace claims become RESOLVED, reset claims become done"""
    claim = store.get_record("log_claim", record_id)
    if claim is None:
        raise HTTPException(status_code=404, detail=f"Claim {record_id} not found")
    if claim.get("type") == "reset":
        return store.update_record("log_claim", record_id, {"done": True})
    return store.update_record("log_claim", record_id, {"status": "RESOLVED"})


@router.get("/attendance/today")
def attendance_today(ctx=Depends(require_admin)):
    return ctx.attendance.today()


# ----------------------------------------------------------------------
# Statistics
# ----------------------------------------------------------------------

@router.get("/stats")
def stats(ctx=Depends(require_admin)):
    return {
        "analytics": ctx.analytics.summary(),
        "learning": ctx.learning.stats(),
        "laws": ctx.content_filter.stats(),
        "performance": ctx.performance.stats(),
        "security": ctx.security.stats(),
        "router": ctx.router.stats,
        "monitoring": {
            "health": ctx.monitoring.health(),
            "active_alerts": len(ctx.monitoring.active_alerts()),
            "uptime": ctx.monitoring.uptime(),
        },
        "records": {name: ctx.store.count_records(name) for name in RECORD_PAYLOADS},
        "redis_sessions": ctx.redis.count_sessions(),
    }
