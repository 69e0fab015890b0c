import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from . import donation_models
from .charity_routes import router as charity_router
from .database import engine
from .donation_routes import router as donation_router
from .webhook_routes import router as webhook_router

logging.basicConfig(
    level=os.getenv('LOG_LEVEL', 'INFO').upper(),
    format='%(asctime)s %(levelname)s %(name)s %(message)s',
)

donation_models.Base.metadata.create_all(bind=engine)

app = FastAPI(title="Charity Receipts API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get('/health')
def health():
    return {"status": "ok"}


# Shopify webhooks (HMAC-verified, no admin key)
app.include_router(webhook_router)

# Admin: charity profile and donation products
app.include_router(charity_router)

# Admin: donations, resend, previews, export
app.include_router(donation_router)
