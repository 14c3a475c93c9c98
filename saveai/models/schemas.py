"""Pydantic schemas for SaveAI requests, responses and stored records."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

CurrencyCode = Annotated[str, Field(pattern=r"^[A-Z]{3}$")]


class Product(BaseModel):
    """Transient product produced by a lookup; never stored directly."""

    id: str
    name: str
    price: float = Field(gt=0)
    currency: CurrencyCode
    image: str | None = None
    url: str
    store: str
    rating: float | None = Field(default=None, ge=0, le=5)
    reviews: int | None = Field(default=None, ge=0)


class SearchResponse(BaseModel):
    query: str
    type: Literal["url", "keyword"]
    urlType: Literal["amazon", "other"] | None = None
    product: Product
    alternatives: list[Product]
    cheapest: Product
    searchId: str


class SuggestedAlternative(BaseModel):
    name: str
    reason: str


class AnalysisResult(BaseModel):
    """Structured product analysis; every field is populated on success."""

    summary: str = Field(min_length=1)
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)
    suggestedAlternatives: list[SuggestedAlternative] = Field(default_factory=list)
    aiProvider: Literal["openai", "manus", "mock"]


class AffiliateResponse(BaseModel):
    affiliateUrl: str
    originalUrl: str
    store: str
    tracked: bool


class RetryResponse(BaseModel):
    query: str
    redirectUrl: str


class StoredRecord(BaseModel):
    """Base for rows owned by a single user."""

    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: str
    created_at: datetime


class SearchRecord(StoredRecord):
    query: str
    type: Literal["url", "keyword"]
    url_type: Literal["amazon", "other"] | None = None
    result_count: int = Field(ge=0)
    cheapest_price: float | None = Field(default=None, gt=0)


class SavedProductCreate(BaseModel):
    """Validated values for a new ``saved_products`` row."""

    product_name: str = Field(min_length=1)
    product_url: str
    product_price: float = Field(gt=0)
    product_currency: CurrencyCode
    product_image: str | None = None
    store: str = Field(min_length=1)
    notes: str | None = None


class SavedProduct(StoredRecord, SavedProductCreate):
    updated_at: datetime


class Notification(StoredRecord):
    title: str
    message: str
    type: str = "info"
    read: bool = False
