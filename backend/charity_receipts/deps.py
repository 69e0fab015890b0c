"""Shared FastAPI dependencies for the admin routes."""
import os

from fastapi import Header, HTTPException

from .pipeline import ReceiptServices

_services = None


def get_services() -> ReceiptServices:
    global _services
    if _services is None:
        _services = ReceiptServices()
    return _services


def require_admin_key(x_api_key: str | None = Header(None)):
    # Simple API key protection for admin actions.
    admin_key = os.getenv('ADMIN_API_KEY')
    if admin_key and x_api_key != admin_key:
        raise HTTPException(status_code=401, detail='Unauthorized')


def get_shop(x_shop_domain: str | None = Header(None)) -> str:
    """The shop every admin call acts on; passed explicitly, never looked up globally."""
    if not x_shop_domain:
        raise HTTPException(status_code=400, detail='X-Shop-Domain header is required')
    return x_shop_domain
