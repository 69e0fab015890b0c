"""
Shopify orders/create webhook receiver

There is no interactive caller here: failures after the donation is
recorded are logged and acknowledged so the event is not redelivered.
"""
import base64
import hashlib
import hmac
import json
import logging
import os

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from .database import get_db
from .deps import get_services
from .pipeline import ReceiptServices, handle_order_created

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Webhooks"])


def verify_webhook(body: bytes, hmac_header: str | None) -> bool:
    """Check X-Shopify-Hmac-Sha256 when SHOPIFY_WEBHOOK_SECRET is set."""
    secret = os.getenv('SHOPIFY_WEBHOOK_SECRET')
    if not secret:
        return True
    if not hmac_header:
        return False
    digest = hmac.new(secret.encode('utf-8'), body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode('ascii')
    return hmac.compare_digest(expected, hmac_header)


@router.post('/webhooks/orders/create')
@router.post('/order.json', include_in_schema=False)
async def order_created(
    request: Request,
    db: Session = Depends(get_db),
    services: ReceiptServices = Depends(get_services)
):
    body = await request.body()
    if not verify_webhook(body, request.headers.get('x-shopify-hmac-sha256')):
        raise HTTPException(status_code=401, detail='Invalid webhook signature')
    shop = request.headers.get('x-shopify-shop-domain')
    if not shop:
        raise HTTPException(status_code=400, detail='X-Shopify-Shop-Domain header is required')
    try:
        order = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail='Body is not JSON')
    if not isinstance(order, dict):
        raise HTTPException(status_code=400, detail='Body must be a JSON object')
    try:
        outcome = await run_in_threadpool(handle_order_created, db, shop, order, services)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    logger.info("orders/create shop=%s order_id=%s outcome=%s", shop, order.get('id'), outcome.value)
    return {"status": outcome.value}
