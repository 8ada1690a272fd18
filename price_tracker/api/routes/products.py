"""Tracked product routes."""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Query
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from price_tracker.config import settings
from price_tracker.ingest.csv_import import generate_sample_csv, import_from_csv
from price_tracker.services.items import item_service
from price_tracker.worker.tracker import tracking_scheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])


class ProductCreate(BaseModel):
    url_or_code: str = Field(..., min_length=1, description="Product URL or numeric product code")
    check_interval_minutes: int = Field(default=60, ge=1, le=1440)
    price_alert_threshold: int = Field(default=10, ge=0, le=100)
    product_code: Optional[str] = Field(default=None, pattern=r"^\d+$")


class IntervalUpdate(BaseModel):
    check_interval_minutes: int


class ThresholdUpdate(BaseModel):
    price_alert_threshold: int


class CsvImportRequest(BaseModel):
    csv_content: str


class ProductResponse(BaseModel):
    id: int
    url: str
    product_code: Optional[str]
    name: str
    current_price: Optional[int]
    previous_price: Optional[int]
    price_change_percent: Optional[int]
    category: Optional[str]
    image_url: Optional[str]
    check_interval_minutes: int
    price_alert_threshold: int
    last_checked_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class PriceHistoryResponse(BaseModel):
    id: int
    price: int
    recorded_at: datetime

    class Config:
        from_attributes = True


@router.get("", response_model=List[ProductResponse])
async def list_products():
    """List all tracked products."""
    return await item_service.list_items()


@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(product_data: ProductCreate):
    """Scrape a product page and start tracking it."""
    return await item_service.add_item(
        product_data.url_or_code,
        check_interval_minutes=product_data.check_interval_minutes,
        price_alert_threshold=product_data.price_alert_threshold,
        product_code=product_data.product_code,
    )


@router.get("/import/sample", response_class=PlainTextResponse)
async def sample_csv():
    """Example CSV accepted by the import endpoint."""
    return generate_sample_csv()


@router.post("/import")
async def import_products(request: CsvImportRequest):
    """Bulk-add products from CSV text."""
    result = await import_from_csv(request.csv_content)
    return result.to_dict()


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: int):
    return await item_service.get_item(product_id)


@router.get("/{product_id}/history", response_model=List[PriceHistoryResponse])
async def get_price_history(
    product_id: int,
    days: int = Query(settings.price_history_days, ge=1, le=365),
):
    """Price observations for the last `days` days."""
    return await item_service.get_history(product_id, days=days)


@router.post("/{product_id}/check")
async def check_price(product_id: int):
    """Check the price now, subject to the per-product cooldown."""
    result = await tracking_scheduler.request_price_check(product_id)
    return result.to_dict()


@router.patch("/{product_id}/interval", response_model=ProductResponse)
async def update_interval(product_id: int, update: IntervalUpdate):
    return await item_service.update_interval(product_id, update.check_interval_minutes)


@router.patch("/{product_id}/threshold", response_model=ProductResponse)
async def update_threshold(product_id: int, update: ThresholdUpdate):
    return await item_service.update_threshold(product_id, update.price_alert_threshold)


@router.delete("/{product_id}", status_code=204)
async def delete_product(product_id: int):
    """Stop tracking a product and delete its history."""
    await item_service.delete_item(product_id)
