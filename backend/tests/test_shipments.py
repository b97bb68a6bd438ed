import asyncio
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from cardswap.dependencies import get_shipping_client
from cardswap.main import app
from cardswap.models.shipment import SHIPMENT_PAID, SHIPMENT_PAYMENT_PENDING, Shipment
from cardswap.services.shipping import ShippingCarrierClient, ShippingCarrierError


@pytest.fixture
def carrier():
    fake = MagicMock(spec=ShippingCarrierClient)
    fake.track = AsyncMock(return_value={
        "tracking_id": "1Z999",
        "status": "in_transit",
        "est_delivery_date": "2024-06-01T12:00:00Z",
        "carrier": "UPS",
    })
    fake.generate_label = AsyncMock(return_value={
        "shipment_id": "shp_123",
        "label_url": "https://labels.example/shp_123.pdf",
        "tracking_id": "1Z999",
    })
    app.dependency_overrides[get_shipping_client] = lambda: fake
    return fake


class TestTracking:

    def test_track_updates_status_and_delivery_date(self, client, db, carrier, make_user, make_proposal, make_shipment, headers_for):
        sender, receiver = make_user(), make_user()
        shipment = make_shipment(make_proposal(sender, receiver), sender, "1Z999")

        response = client.get(f"/api/shipments/{shipment.id}/track", headers=headers_for(sender))

        assert response.status_code == 200
        assert response.json()["data"]["shipment_status"] == "in_transit"
        carrier.track.assert_awaited_once_with("1Z999")
        db.expire_all()
        assert db.get(Shipment, shipment.id).estimated_delivery_date == datetime(2024, 6, 1, 12, 0)

    def test_offset_delivery_date_is_stored_in_utc(self, client, db, carrier, make_user, make_proposal, make_shipment, headers_for):
        sender, receiver = make_user(), make_user()
        shipment = make_shipment(make_proposal(sender, receiver), sender, "1Z999")
        carrier.track.return_value = {"status": "in_transit", "est_delivery_date": "2024-06-01T12:00:00+02:00"}

        client.get(f"/api/shipments/{shipment.id}/track", headers=headers_for(sender))

        db.expire_all()
        assert db.get(Shipment, shipment.id).estimated_delivery_date == datetime(2024, 6, 1, 10, 0)

    def test_carrier_failure_is_bad_gateway(self, client, carrier, make_user, make_proposal, make_shipment, headers_for):
        sender, receiver = make_user(), make_user()
        shipment = make_shipment(make_proposal(sender, receiver), sender)
        carrier.track.side_effect = ShippingCarrierError("timeout")

        response = client.get(f"/api/shipments/{shipment.id}/track", headers=headers_for(sender))

        assert response.status_code == 502
        assert response.json()["message"] == "Shipping carrier is unavailable"

    def test_other_party_cannot_track(self, client, carrier, make_user, make_proposal, make_shipment, headers_for):
        sender, receiver = make_user(), make_user()
        shipment = make_shipment(make_proposal(sender, receiver), sender)

        response = client.get(f"/api/shipments/{shipment.id}/track", headers=headers_for(receiver))

        assert response.status_code == 403

    def test_untracked_shipment(self, client, carrier, make_user, make_proposal, make_shipment, headers_for):
        sender, receiver = make_user(), make_user()
        shipment = make_shipment(make_proposal(sender, receiver), sender, tracking_id="")

        response = client.get(f"/api/shipments/{shipment.id}/track", headers=headers_for(sender))

        assert response.status_code == 400
        carrier.track.assert_not_awaited()

    def test_unknown_shipment(self, client, carrier, make_user, headers_for):
        assert client.get("/api/shipments/999/track", headers=headers_for(make_user())).status_code == 404


class TestLabels:

    def test_label_is_stored(self, client, db, carrier, make_user, make_proposal, make_shipment, headers_for):
        sender, receiver = make_user(), make_user()
        shipment = make_shipment(make_proposal(sender, receiver), sender)
        shipment.selected_rate = "shp_123"
        db.commit()

        response = client.get(f"/api/shipments/{shipment.id}/label", headers=headers_for(sender))

        assert response.json()["data"]["label_url"] == "https://labels.example/shp_123.pdf"
        carrier.generate_label.assert_awaited_once_with("shp_123")
        db.expire_all()
        assert db.get(Shipment, shipment.id).postage_label == "https://labels.example/shp_123.pdf"
        assert db.get(Shipment, shipment.id).shipment_payment_status == SHIPMENT_PAID

    def test_label_needs_a_rate(self, client, carrier, make_user, make_proposal, make_shipment, headers_for):
        sender, receiver = make_user(), make_user()
        shipment = make_shipment(make_proposal(sender, receiver), sender)

        response = client.get(f"/api/shipments/{shipment.id}/label", headers=headers_for(sender))

        assert response.status_code == 400
        assert shipment.shipment_payment_status == SHIPMENT_PAYMENT_PENDING


class TestCarrierClient:

    def test_unreachable_carrier_raises(self):
        client = ShippingCarrierClient(base_url="http://127.0.0.1:9", api_key="key", timeout=1)

        with pytest.raises(ShippingCarrierError):
            asyncio.run(client.track("1Z999"))
