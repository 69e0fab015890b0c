"""
API endpoints for recorded donations: listing, receipt resend, template
previews, test emails and CSV export
"""
import logging

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from starlette.responses import Response
from typing import List, Optional
from . import donation_schemas, ledger, pipeline
from .database import get_db
from .deps import get_services, get_shop, require_admin_key
from .errors import CompositionError, DeliveryError, DonationNotFound
from .export import export_csv
from .pipeline import ReceiptServices
from .shopify import ShopifyError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Donations"], dependencies=[Depends(require_admin_key)])


def _deliver_or_raise(send):
    """Run a resend/test-send and turn pipeline failures into HTTP errors."""
    try:
        outcome = send()
    except DonationNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CompositionError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except (DeliveryError, ShopifyError) as e:
        logger.warning("receipt delivery failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))
    return {"status": outcome.value}


@router.get("/donations", response_model=List[donation_schemas.Donation])
def list_donations(
    skip: int = 0,
    limit: int = Query(50, le=200),
    shop: str = Depends(get_shop),
    db: Session = Depends(get_db)
):
    return ledger.find_by_shop(db, shop, skip=skip, limit=limit)


@router.post("/donations/{id}/resend", response_model=donation_schemas.DeliveryResult)
def resend_donation_receipt(
    id: int,
    payload: Optional[donation_schemas.ResendRequest] = Body(None),
    shop: str = Depends(get_shop),
    db: Session = Depends(get_db),
    services: ReceiptServices = Depends(get_services)
):
    """Compose and send the receipt again, optionally to a different address"""
    to = payload.to if payload else None
    return _deliver_or_raise(lambda: pipeline.resend_receipt(db, shop, id, services, to=to))


@router.post("/test_email", response_model=donation_schemas.DeliveryResult)
def send_test_email(
    payload: donation_schemas.SendTestRequest,
    shop: str = Depends(get_shop),
    db: Session = Depends(get_db),
    services: ReceiptServices = Depends(get_services)
):
    """Send a receipt for the sample order to the given address"""
    if not payload.to:
        raise HTTPException(status_code=400, detail="to is required")
    return _deliver_or_raise(lambda: pipeline.send_test_email(db, shop, payload.to, services))


@router.post("/preview/email", response_model=donation_schemas.PreviewEmail)
def preview_email(
    payload: donation_schemas.PreviewEmailRequest,
    shop: str = Depends(get_shop),
    db: Session = Depends(get_db),
    services: ReceiptServices = Depends(get_services)
):
    """Render an edited subject/template against the sample order"""
    try:
        return pipeline.preview_email(db, shop, services, subject=payload.subject, template=payload.template)
    except CompositionError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/preview/pdf")
def preview_pdf(
    shop: str = Depends(get_shop),
    db: Session = Depends(get_db),
    services: ReceiptServices = Depends(get_services)
):
    try:
        pdf = pipeline.preview_pdf(db, shop, services)
    except CompositionError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return Response(content=pdf, media_type='application/pdf')


@router.post("/export")
def export_donations(
    payload: donation_schemas.ExportRequest,
    shop: str = Depends(get_shop),
    db: Session = Depends(get_db)
):
    if payload.end_date < payload.start_date:
        raise HTTPException(status_code=400, detail="end_date is before start_date")
    csv_bytes = export_csv(db, shop, payload.start_date, payload.end_date)
    return Response(
        content=csv_bytes,
        media_type='application/csv',
        headers={'Content-Disposition': 'attachment; filename="donations.csv"'},
    )
