from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
import json

from database import get_db
from models import User
import schemas
from auth import get_current_user
from services import payment_service
from .limiter import limiter


router = APIRouter(prefix="/api/payments", tags=["Payments"])


@router.get("/methods")
async def payment_methods():
    """Enabled payment gateways"""
    return {"success": True, "data": payment_service.list_methods()}


@router.post("/create-intent")
@limiter.limit("10/minute")
async def create_payment_intent(
    request: Request,
    intent_data: schemas.PaymentIntentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Start a payment for one of the caller's pending orders"""
    data = payment_service.create_intent(
        db,
        current_user,
        order_id=intent_data.order_id,
        payment_method=intent_data.payment_method,
        return_url=intent_data.return_url,
        cancel_url=intent_data.cancel_url,
        payment_data=intent_data.payment_data
    )
    return {"success": True, "data": data}


@router.post("/{payment_id}/confirm")
@limiter.limit("20/minute")
async def confirm_payment(
    request: Request,
    payment_id: int,
    confirm_data: schemas.PaymentConfirm,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    data = payment_service.confirm(db, current_user, payment_id, confirm_data.gateway_data)
    message = "Payment already processed" if data["already_processed"] else "Payment confirmation processed"
    return {"success": True, "message": message, "data": data}


@router.get("/{payment_id}/status")
async def payment_status(payment_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return {"success": True, "data": payment_service.get_status(db, current_user, payment_id)}


@router.post("/webhook/{provider}")
async def payment_webhook(provider: str, request: Request, db: Session = Depends(get_db)):
    """
    Gateway notifications. Unauthenticated; each provider's signature is checked instead.
    """
    body = await request.body()

    if request.headers.get("content-type", "").startswith("application/x-www-form-urlencoded"):
        # PayU posts its confirmation as a form
        form = await request.form()
        payload = dict(form.items())
    else:
        try:
            payload = json.loads(body or b"{}")
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid payload")
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Invalid payload")

    message = payment_service.handle_webhook(db, provider, request.headers, body, payload)
    return {"success": True, "message": message}
