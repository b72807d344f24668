import logging
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import httpx
from fastapi import Depends, FastAPI
from pydantic import BaseModel, conint
from sqlalchemy.orm import Session

from cart_offer.config import (
    LOG_LEVEL,
    SEGMENT_SERVICE_TIMEOUT,
    SEGMENT_SERVICE_URL,
    USER_SEGMENTS,
)
from cart_offer.models import Base, Offer, engine, get_db


# =====================
# LOGGING
# =====================

logger = logging.getLogger(__name__)


def setup_logging(level_name: str = LOG_LEVEL) -> int:
    level = logging.getLevelName(level_name.strip().upper())
    known = isinstance(level, int)
    if not known:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    if not known:
        logger.warning("unknown LOG_LEVEL %r, using INFO", level_name)
    return level


# =====================
# DATABASE
# =====================

Base.metadata.create_all(bind=engine)


# =====================
# FASTAPI
# =====================

app = FastAPI(title="Cart Offer Service")


@app.on_event("startup")
async def _startup():
    setup_logging()

# SQLite INTEGER range
DbInt = conint(ge=-(2**63), le=2**63 - 1)


class OfferRequest(BaseModel):
    restaurant_id: DbInt
    offer_type: str
    offer_value: DbInt
    customer_segment: list[str] = []


class OfferResponse(BaseModel):
    response_msg: str


class SegmentResponse(BaseModel):
    segment: str


class ApplyOfferRequest(BaseModel):
    cart_value: int
    user_id: int
    restaurant_id: DbInt


class ApplyOfferResponse(BaseModel):
    cart_value: int


# =====================
# LOGIC
# =====================

class OfferKind(str, Enum):
    FLAT_AMOUNT = "FLAT_AMOUNT"
    FLAT_PERCENT = "FLAT_PERCENT"


# FLAT10 -> amount, FLAT20% -> percent
_FLAT_LABEL = re.compile(r"^FLAT\d+(%?)$")


def classify_offer_type(offer_type: str) -> Optional[OfferKind]:
    """
    Returns None for anything that is not a known flat offer.
    The label never carries the discount value, only its kind.
    """
    label = offer_type.strip().upper()

    if label in OfferKind.__members__:
        return OfferKind[label]

    match = _FLAT_LABEL.match(label)
    if not match:
        return None
    return OfferKind.FLAT_PERCENT if match.group(1) else OfferKind.FLAT_AMOUNT


def _percent_of(value: int, percent: int) -> int:
    # truncates toward zero, not floor
    product = value * percent
    share = abs(product) // 100
    return share if product >= 0 else -share


def discounted_cart_value(cart_value: int, offer: Optional[Offer]) -> int:
    result = cart_value

    if offer is not None:
        kind = classify_offer_type(offer.offer_type)
        if kind is OfferKind.FLAT_AMOUNT:
            result = cart_value - offer.offer_value
        elif kind is OfferKind.FLAT_PERCENT:
            result = cart_value - _percent_of(cart_value, offer.offer_value)

    return max(result, 0)


def find_matching_offer(db: Session, restaurant_id: int, segment: Optional[str]) -> Optional[Offer]:
    """Latest registration wins when several offers cover the same segment."""
    if segment is None:
        return None

    offers = (
        db.query(Offer)
        .filter(Offer.restaurant_id == restaurant_id)
        .order_by(Offer.id.desc())
        .all()
    )
    for offer in offers:
        if segment in (offer.customer_segment or []):
            return offer
    return None


async def get_segment_client():
    async with httpx.AsyncClient(
        base_url=SEGMENT_SERVICE_URL, timeout=SEGMENT_SERVICE_TIMEOUT
    ) as client:
        yield client


async def fetch_user_segment(client: httpx.AsyncClient, user_id: int) -> Optional[str]:
    try:
        resp = await client.get("/api/v1/user_segment", params={"user_id": user_id})
        resp.raise_for_status()
        payload = resp.json()
    except httpx.HTTPError as e:
        logger.warning("segment lookup failed for user=%s: %s", user_id, e)
        return None
    except ValueError as e:
        logger.warning("segment lookup returned invalid JSON for user=%s: %s", user_id, e)
        return None

    segment = payload.get("segment") if isinstance(payload, dict) else None
    if not isinstance(segment, str):
        logger.warning("segment lookup returned no segment for user=%s", user_id)
        return None
    return segment


# =====================
# API
# =====================

@app.post("/api/v1/offer", response_model=OfferResponse)
async def register_offer(req: OfferRequest, db: Session = Depends(get_db)):
    if classify_offer_type(req.offer_type) is None:
        logger.info("offer type %r is not recognized, storing anyway", req.offer_type)

    db.add(
        Offer(
            restaurant_id=req.restaurant_id,
            offer_type=req.offer_type,
            offer_value=req.offer_value,
            customer_segment=list(req.customer_segment),
            created_at=datetime.now(timezone.utc),
        )
    )
    db.commit()

    logger.info(
        "offer registered: restaurant=%s type=%s value=%s segments=%s",
        req.restaurant_id, req.offer_type, req.offer_value, req.customer_segment,
    )
    return OfferResponse(response_msg="success")


@app.get("/api/v1/user_segment", response_model=SegmentResponse)
async def user_segment(user_id: int):
    return SegmentResponse(segment=USER_SEGMENTS.segment_for(user_id))


@app.post("/api/v1/cart/apply_offer", response_model=ApplyOfferResponse)
async def apply_offer(
    req: ApplyOfferRequest,
    db: Session = Depends(get_db),
    segment_client: httpx.AsyncClient = Depends(get_segment_client),
):
    segment = await fetch_user_segment(segment_client, req.user_id)
    offer = find_matching_offer(db, req.restaurant_id, segment)
    cart_value = discounted_cart_value(req.cart_value, offer)

    logger.info(
        "apply_offer: user=%s segment=%s restaurant=%s offer=%s cart %s -> %s",
        req.user_id, segment, req.restaurant_id,
        offer.offer_type if offer is not None else None,
        req.cart_value, cart_value,
    )
    return ApplyOfferResponse(cart_value=cart_value)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
