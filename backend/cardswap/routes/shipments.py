from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from datetime import datetime, timezone
import logging
from cardswap.database import get_db
from cardswap.dependencies import get_current_user, get_shipping_client
from cardswap.models.shipment import SHIPMENT_PAID, Shipment
from cardswap.models.user import User
from cardswap.responses import api_response
from cardswap.services.shipping import ShippingCarrierClient, ShippingCarrierError

logger = logging.getLogger(__name__)

router = APIRouter()

def _own_shipment(db: Session, shipment_id: int, user: User) -> Shipment:
    shipment = db.query(Shipment).filter(Shipment.id == shipment_id).first()
    if not shipment:
        raise HTTPException(status_code=404, detail="Shipment not found")
    if shipment.user_id != user.id:
        raise HTTPException(status_code=403, detail="You do not own this shipment")
    return shipment

def _parse_carrier_date(value):
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable delivery date from carrier: %s", value)
        return None
    # Stored naive in UTC
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed

@router.get("/{shipment_id}/track")
async def track_shipment(
    shipment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    carrier: ShippingCarrierClient = Depends(get_shipping_client),
):
    shipment = _own_shipment(db, shipment_id, current_user)
    if not shipment.is_fulfilled:
        raise HTTPException(status_code=400, detail="Shipment has no tracking id yet")
    try:
        tracking = await carrier.track(shipment.tracking_id)
    except ShippingCarrierError:
        raise HTTPException(status_code=502, detail="Shipping carrier is unavailable")

    if tracking.get("status"):
        shipment.shipment_status = tracking["status"]
    delivery_date = _parse_carrier_date(tracking.get("est_delivery_date"))
    if delivery_date:
        shipment.estimated_delivery_date = delivery_date
    db.commit()
    db.refresh(shipment)
    return api_response(200, True, "Tracking retrieved successfully", {
        "shipment_id": shipment.id,
        "tracking_id": shipment.tracking_id,
        "shipment_status": shipment.shipment_status,
        "estimated_delivery_date": shipment.estimated_delivery_date,
    })

@router.get("/{shipment_id}/label")
async def shipment_label(
    shipment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    carrier: ShippingCarrierClient = Depends(get_shipping_client),
):
    shipment = _own_shipment(db, shipment_id, current_user)
    if not shipment.selected_rate:
        raise HTTPException(status_code=400, detail="Shipment has no purchased rate")
    try:
        label = await carrier.generate_label(shipment.selected_rate)
    except ShippingCarrierError:
        raise HTTPException(status_code=502, detail="Shipping carrier is unavailable")

    if label.get("label_url"):
        shipment.postage_label = label["label_url"]
        shipment.shipment_payment_status = SHIPMENT_PAID
        db.commit()
    return api_response(200, True, "Label generated successfully", label)
