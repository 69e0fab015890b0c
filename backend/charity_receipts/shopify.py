"""
Shopify Admin API client

Resolves a donation's source order on demand (the ledger stores only the
order id) and looks up the shop's own email for the default sender.
Configurable timeout and simple retry/backoff for transient network errors.
"""
import logging
import os
import time
from typing import Any, Dict

import requests
from requests.exceptions import ConnectionError as RequestsConnectionError, ReadTimeout, RequestException

logger = logging.getLogger(__name__)


class ShopifyError(Exception):
    """Admin API request failed or returned something unusable."""


class ShopifyClient:
    # configurable via environment
    API_VERSION = os.getenv('SHOPIFY_API_VERSION', '2024-07')
    ACCESS_TOKEN = os.getenv('SHOPIFY_ACCESS_TOKEN', '')
    TIMEOUT = int(os.getenv('SHOPIFY_TIMEOUT', '10'))
    RETRIES = int(os.getenv('SHOPIFY_RETRIES', '3'))
    BACKOFF_FACTOR = float(os.getenv('SHOPIFY_BACKOFF', '0.5'))

    def __init__(self, access_token: str = None, session: requests.Session = None):
        self.session = session or requests.Session()
        self.session.headers.update({
            "X-Shopify-Access-Token": access_token or self.ACCESS_TOKEN,
            "Accept": "application/json",
        })

    def _url(self, shop: str, path: str) -> str:
        return f"https://{shop}/admin/api/{self.API_VERSION}/{path}"

    def _get_with_retries(self, url: str, **kwargs):
        """GET with retry/backoff on timeouts and dropped connections."""
        for attempt in range(1, self.RETRIES + 1):
            try:
                resp = self.session.get(url, timeout=self.TIMEOUT, **kwargs)
                resp.raise_for_status()
                return resp
            except (ReadTimeout, RequestsConnectionError) as e:
                if attempt < self.RETRIES:
                    wait = self.BACKOFF_FACTOR * (2 ** (attempt - 1))
                    logger.warning("Shopify request failed (attempt %s/%s), retrying in %ss: %s",
                                   attempt, self.RETRIES, wait, e)
                    time.sleep(wait)
                    continue
                raise ShopifyError(f"Shopify request to {url} failed after {self.RETRIES} attempts") from e
            except RequestException as e:
                raise ShopifyError(f"Shopify request to {url} failed: {e}") from e

    def _get_resource(self, shop: str, path: str, key: str) -> Dict[str, Any]:
        resp = self._get_with_retries(self._url(shop, path))
        try:
            return resp.json()[key]
        except (ValueError, KeyError) as e:
            raise ShopifyError(f"unexpected response from {path}") from e

    def get_order(self, shop: str, order_id) -> Dict[str, Any]:
        return self._get_resource(shop, f"orders/{order_id}.json", 'order')

    def get_shop(self, shop: str) -> Dict[str, Any]:
        return self._get_resource(shop, "shop.json", 'shop')
