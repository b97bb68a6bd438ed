import httpx
import logging
from typing import Any, Dict
from cardswap.config import settings

logger = logging.getLogger(__name__)

class ShippingCarrierError(Exception):
    """The carrier could not be reached or rejected the request."""

class ShippingCarrierClient:
    """Thin client for the carrier's tracker and label endpoints."""

    def __init__(self, base_url: str = None, api_key: str = None, timeout: float = None):
        self.base_url = (base_url or settings.shipping_api_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.shipping_api_key
        self.timeout = timeout or settings.shipping_timeout

    async def _get(self, path: str, **params) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(auth=(self.api_key, ""), timeout=self.timeout) as client:
                response = await client.get(f"{self.base_url}{path}", params=params or None)
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Carrier request %s failed: %s", path, e)
            raise ShippingCarrierError(str(e)) from e

    async def track(self, tracking_id: str) -> Dict[str, Any]:
        data = await self._get(f"/trackers/{tracking_id}")
        return {
            "tracking_id": data.get("tracking_code", tracking_id),
            "status": data.get("status"),
            "est_delivery_date": data.get("est_delivery_date"),
            "carrier": data.get("carrier"),
        }

    async def generate_label(self, shipment_id: str) -> Dict[str, Any]:
        data = await self._get(f"/shipments/{shipment_id}/label", file_format="PDF")
        label = data.get("postage_label") or {}
        return {
            "shipment_id": data.get("id", shipment_id),
            "label_url": label.get("label_pdf_url") or label.get("label_url"),
            "tracking_id": data.get("tracking_code"),
        }
