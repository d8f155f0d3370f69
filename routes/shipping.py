from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from typing import Optional
import json

from database import get_db
from models import User
import schemas
from auth import get_current_user
from services import ShippingService
from .limiter import limiter

router = APIRouter(prefix="/api/shipping", tags=["Shipping"])


@router.post("/methods")
@limiter.limit("30/minute")
async def shipping_methods(request: Request, destination: schemas.ShippingDestination):
    """Quotes from every enabled carrier for a destination, cheapest first"""
    return {"success": True, "data": ShippingService.available_methods(destination.to_destination())}


@router.post("/calculate")
@limiter.limit("30/minute")
async def calculate_shipping(request: Request, quote_request: schemas.ShippingQuoteRequest):
    """Quote a single carrier service"""
    data = quote_request.to_destination()
    data["carrier"] = quote_request.carrier
    data["service_type"] = quote_request.service_type
    if quote_request.origin_city:
        data["origin"] = {"city": quote_request.origin_city, "state": quote_request.origin_state or ""}
    return {"success": True, "data": ShippingService.calculate(data)}


@router.post("/track")
async def track_shipment(
    tracking: schemas.TrackingRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Live tracking for one of the caller's shipments"""
    data = ShippingService.track(db, current_user, tracking.carrier, tracking.tracking_number)
    return {"success": True, "data": data}


@router.get("/zones")
async def shipping_zones(current_user: User = Depends(get_current_user)):
    return {"success": True, "data": ShippingService.zones()}


@router.get("/coverage/{carrier}")
async def carrier_coverage(
    carrier: str,
    country: Optional[str] = None,
    city: Optional[str] = None,
    state: Optional[str] = None,
    current_user: User = Depends(get_current_user)
):
    location = {"country": country, "city": city, "state": state}
    return {"success": True, "data": ShippingService.coverage(carrier, location)}


@router.post("/webhook/{carrier}")
async def shipping_webhook(carrier: str, request: Request, db: Session = Depends(get_db)):
    """
    Carrier tracking notifications. Unauthenticated; the carrier's signature is checked instead.
    """
    body = await request.body()
    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")

    message = ShippingService.handle_webhook(db, carrier, request.headers, body, payload)
    return {"success": True, "message": message}
