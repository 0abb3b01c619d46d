from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

REQUIRED_FIELDS: tuple[str, ...] = (
    "name",
    "category",
    "description",
    "bannerImage",
    "ownerName",
    "ownerPhone",
)


class StallCategory(str, Enum):
    food = "food"
    accessories = "accessories"
    games = "games"


class MenuItem(BaseModel):
    name: str
    price: str


class LimitedTimeOffer(BaseModel):
    title: str
    description: Optional[str] = None
    validTill: Optional[str] = None


class Review(BaseModel):
    user: str
    rating: float
    comment: str


class StallSubmission(BaseModel):
    """Shape of the stall document clients send.

    The API stores the document verbatim; only REQUIRED_FIELDS are checked.
    The save route publishes this schema as its OpenAPI request body.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    category: StallCategory
    description: str
    bannerImage: str
    logoImage: Optional[str] = None
    ownerName: str
    ownerPhone: str
    images: Optional[list[str]] = None
    instagram: Optional[str] = None
    items: Optional[list[MenuItem]] = None
    highlights: Optional[list[str]] = None
    bestSellers: Optional[list[str]] = None
    offers: Optional[list[str]] = None
    availableAt: Optional[list[str]] = None
    stallNumber: Optional[str] = None
    paymentMethods: Optional[list[str]] = None
    limitedTimeOffers: Optional[list[LimitedTimeOffer]] = None
    reviews: Optional[list[Review]] = None


def missing_fields(payload: dict[str, Any]) -> list[str]:
    # Falsy counts as missing: "", None, [], 0.
    return [f for f in REQUIRED_FIELDS if not payload.get(f)]


class SubmissionRow(BaseModel):
    id: Any
    stall_slug: str
    payload: dict[str, Any]
    created_at: Optional[str] = None


class SubmissionEnvelope(BaseModel):
    submission: Optional[SubmissionRow] = None


class SaveResponse(BaseModel):
    ok: bool = True
    submission: Optional[SubmissionRow] = None


class DeleteResponse(BaseModel):
    ok: bool = True
    deleted: int = Field(default=0, ge=0)


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
    fields: Optional[list[str]] = None
