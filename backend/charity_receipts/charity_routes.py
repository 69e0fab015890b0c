"""
API endpoints for the shop's charity profile and donation products
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from . import donation_models, donation_schemas
from .database import get_db
from .deps import get_shop, require_admin_key
from .pipeline import get_charity, get_donation_products

router = APIRouter(prefix="/api/v1", tags=["Charity"], dependencies=[Depends(require_admin_key)])


# ===== CHARITY =====

@router.get("/charity", response_model=donation_schemas.Charity)
def read_charity(shop: str = Depends(get_shop), db: Session = Depends(get_db)):
    charity = get_charity(db, shop)
    if not charity:
        raise HTTPException(status_code=404, detail="Charity not configured")
    return charity


@router.put("/charity", response_model=donation_schemas.Charity)
def save_charity(
    payload: donation_schemas.CharityUpdate,
    shop: str = Depends(get_shop),
    db: Session = Depends(get_db)
):
    """Create the shop's charity, or update it if it already exists"""
    charity = get_charity(db, shop)
    if charity is None:
        charity = donation_models.Charity(shop=shop)
        db.add(charity)
    for field, value in payload.model_dump().items():
        setattr(charity, field, value)
    db.commit()
    db.refresh(charity)
    return charity


# ===== DONATION PRODUCTS =====

@router.get("/products", response_model=List[donation_schemas.DonationProduct])
def list_products(shop: str = Depends(get_shop), db: Session = Depends(get_db)):
    return get_donation_products(db, shop)


@router.post("/products", response_model=donation_schemas.DonationProduct)
def add_product(
    payload: donation_schemas.DonationProductCreate,
    shop: str = Depends(get_shop),
    db: Session = Depends(get_db)
):
    """Mark a product as donation-eligible; re-adding one updates its percentage"""
    product_id = str(payload.product_id)
    product = db.query(donation_models.DonationProduct).filter(
        donation_models.DonationProduct.shop == shop,
        donation_models.DonationProduct.product_id == product_id
    ).first()
    if product is None:
        product = donation_models.DonationProduct(shop=shop, product_id=product_id)
        db.add(product)
    product.percentage = payload.percentage
    db.commit()
    db.refresh(product)
    return product


@router.delete("/products/{id}")
def delete_product(id: int, shop: str = Depends(get_shop), db: Session = Depends(get_db)):
    product = db.query(donation_models.DonationProduct).filter(
        donation_models.DonationProduct.shop == shop,
        donation_models.DonationProduct.id == id
    ).first()
    if not product:
        raise HTTPException(status_code=404, detail="Not found")
    db.delete(product)
    db.commit()
    return {"message": "Product removed"}
