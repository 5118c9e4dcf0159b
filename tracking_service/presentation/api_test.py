from http import HTTPStatus
from decimal import Decimal
from unittest.mock import ANY, AsyncMock

import pytest
from httpx import AsyncClient

from tracking_service.application.shipment_lifecycle import ShipmentLifecycleManager

ADMIN_HEADERS = {
    "X-User-Id": "admin-1",
    "X-User-Email": "admin@example.com",
    "X-User-Role": "admin",
}
USER_HEADERS = {"X-User-Id": "user-1", "X-User-Email": "alice@example.com"}
BOB_HEADERS = {"X-User-Id": "user-2", "X-User-Email": "bob@example.com", "X-User-Role": "user"}


@pytest.mark.asyncio
async def test_health(test_async_client: AsyncClient):
    response = await test_async_client.get("/health")

    assert response.status_code == HTTPStatus.OK
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_anonymous_request_is_unauthorized(test_async_client: AsyncClient):
    # When
    response = await test_async_client.get("/shipments")

    # Then
    assert response.status_code == HTTPStatus.UNAUTHORIZED
    assert response.json() == {"error": "unauthorized", "message": "Unauthorized"}


@pytest.mark.asyncio
async def test_create_shipment(test_async_client: AsyncClient):
    # Given
    body = {
        "senderCountryCode": "us",
        "destinationCountryCode": "NG",
        "senderName": "Alice",
        "invoiceAmount": "99.99",
        "invoiceCurrency": "usd",
    }

    # When
    response = await test_async_client.post("/shipments", json=body, headers=USER_HEADERS)

    # Then
    assert response.status_code == HTTPStatus.CREATED
    data = response.json()
    assert data["ok"] is True
    shipment = data["shipment"]
    assert shipment["shipmentId"].startswith("EXS-")
    assert shipment["trackingNumber"][4:6] == "US"
    assert shipment["status"] == "Created"
    assert shipment["statusNote"] == "Shipment has been created and is being processed."
    assert shipment["statusColor"] == "slate"
    assert shipment["nextStep"] == "Dispatch will be scheduled once processing is complete."
    assert shipment["senderName"] == "Alice"
    assert shipment["createdByEmail"] == "alice@example.com"
    assert shipment["invoice"] == {
        "amount": "99.99",
        "currency": "USD",
        "paid": False,
        "paidAt": None,
    }
    assert shipment["createdAt"] == ANY


@pytest.mark.asyncio
async def test_create_shipment_unknown_field_is_rejected(test_async_client: AsyncClient):
    # When
    response = await test_async_client.post(
        "/shipments",
        json={"senderCountryCode": "US", "destinationCountryCode": "NG", "isAdmin": True},
        headers=USER_HEADERS,
    )

    # Then
    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.json() == {
        "error": "validation_error",
        "message": "Invalid or missing fields: isAdmin",
    }


@pytest.mark.asyncio
async def test_create_shipment_bad_country(test_async_client: AsyncClient):
    response = await test_async_client.post(
        "/shipments",
        json={"senderCountryCode": "USA", "destinationCountryCode": "NG"},
        headers=USER_HEADERS,
    )

    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.json()["error"] == "validation_error"


@pytest.mark.asyncio
async def test_list_shipments_caps_limit_and_scopes_to_owner(
    test_async_client: AsyncClient, shipment_factory
):
    # Given
    for _ in range(3):
        await shipment_factory()
    await shipment_factory(created_by_user_id="user-2", created_by_email="bob@example.com")

    # When
    own = await test_async_client.get("/shipments?limit=500", headers=USER_HEADERS)
    everything = await test_async_client.get("/shipments?limit=500", headers=ADMIN_HEADERS)

    # Then
    assert own.status_code == HTTPStatus.OK
    assert len(own.json()["results"]) == 3
    assert len(everything.json()["results"]) == 4


@pytest.mark.asyncio
async def test_malformed_query_param(test_async_client: AsyncClient):
    response = await test_async_client.get("/shipments?limit=lots", headers=USER_HEADERS)

    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.json()["message"] == "Invalid or missing fields: limit"


@pytest.mark.asyncio
async def test_get_shipment_of_someone_else(test_async_client: AsyncClient, shipment_factory):
    # Given
    await shipment_factory()

    # When
    response = await test_async_client.get("/shipments/EXS-240101-000001", headers=BOB_HEADERS)

    # Then
    assert response.status_code == HTTPStatus.NOT_FOUND
    assert response.json()["error"] == "not_found"


@pytest.mark.asyncio
async def test_search(test_async_client: AsyncClient, shipment_factory):
    # Given
    await shipment_factory(tracking_number="EX24US1234567A")

    # When
    response = await test_async_client.get(
        "/shipments/search", params={"q": "ex24us"}, headers=USER_HEADERS
    )

    # Then
    assert response.status_code == HTTPStatus.OK
    assert response.json() == {
        "items": [
            {
                "shipmentId": "EXS-240101-000001",
                "trackingNumber": "EX24US1234567A",
                "status": "Created",
                "senderCountryCode": "US",
                "destinationCountryCode": "NG",
                "createdAt": ANY,
            }
        ]
    }


@pytest.mark.asyncio
async def test_update_status_cancel_scenario(
    test_async_client: AsyncClient, shipment_factory
):
    # Given
    await shipment_factory(shipment_id="EXS-240101-ABCDEF")

    # When
    response = await test_async_client.patch(
        "/admin/shipments/status",
        json={"shipmentId": "EXS-240101-ABCDEF", "status": "cancelled"},
        headers=ADMIN_HEADERS,
    )

    # Then
    assert response.status_code == HTTPStatus.OK
    assert response.json() == {"ok": True}
    shipment = (
        await test_async_client.get("/shipments/EXS-240101-ABCDEF", headers=USER_HEADERS)
    ).json()["shipment"]
    assert shipment["status"] == "cancelled"
    assert shipment["statusNote"] == ""
    assert shipment["cancelledAt"] is not None

    notifications = (
        await test_async_client.get("/notifications", headers=USER_HEADERS)
    ).json()
    assert notifications["unreadCount"] == 1
    assert notifications["notifications"][0]["shipmentId"] == "EXS-240101-ABCDEF"


@pytest.mark.asyncio
async def test_update_status_requires_admin(test_async_client: AsyncClient, shipment_factory):
    # Given
    await shipment_factory(shipment_id="EXS-240101-ABCDEF")
    body = {"shipmentId": "EXS-240101-ABCDEF", "status": "Delivered"}

    # When
    as_user = await test_async_client.patch(
        "/admin/shipments/status", json=body, headers=USER_HEADERS
    )
    as_anonymous = await test_async_client.patch("/admin/shipments/status", json=body)

    # Then
    assert as_user.status_code == HTTPStatus.FORBIDDEN
    assert as_user.json() == {"error": "forbidden", "message": "Forbidden"}
    assert as_anonymous.status_code == HTTPStatus.UNAUTHORIZED


@pytest.mark.asyncio
async def test_update_status_unknown_shipment(test_async_client: AsyncClient):
    response = await test_async_client.patch(
        "/admin/shipments/status",
        json={"shipmentId": "EXS-000000-000000", "status": "Delivered"},
        headers=ADMIN_HEADERS,
    )

    assert response.status_code == HTTPStatus.NOT_FOUND


@pytest.mark.asyncio
async def test_tracking_history(test_async_client: AsyncClient, shipment_factory):
    # Given
    await shipment_factory()
    created = await test_async_client.post(
        "/shipments/EXS-240101-000001/tracking",
        json={"status": "In Transit", "location": "Lagos", "occurredAt": "2024-01-02T10:00:00Z"},
        headers=ADMIN_HEADERS,
    )

    # When
    own = await test_async_client.get(
        "/shipments/EXS-240101-000001/tracking", headers=USER_HEADERS
    )
    stranger = await test_async_client.get(
        "/shipments/EXS-240101-000001/tracking", headers=BOB_HEADERS
    )

    # Then
    assert created.status_code == HTTPStatus.CREATED
    assert [e["location"] for e in own.json()["events"]] == ["Lagos"]
    assert stranger.json() == {"events": []}


@pytest.mark.asyncio
async def test_dashboard_stats(test_async_client: AsyncClient, shipment_factory):
    # Given
    await shipment_factory(status="Delivered")

    # When
    response = await test_async_client.get("/dashboard/stats", headers=USER_HEADERS)

    # Then
    assert response.status_code == HTTPStatus.OK
    data = response.json()
    assert data["total"] == 1
    assert data["delivered"] == 1
    assert data["pendingInvoicesCount"] == 0
    assert data["pendingInvoicesByCurrency"] == {}


@pytest.mark.asyncio
async def test_notification_lifecycle(test_async_client: AsyncClient):
    # Given
    created = await test_async_client.post(
        "/admin/notifications",
        json={"userEmail": "alice@example.com", "title": "Hi", "message": "Welcome"},
        headers=ADMIN_HEADERS,
    )
    assert created.status_code == HTTPStatus.CREATED
    notification_id = created.json()["id"]

    # When
    read = await test_async_client.post(
        "/notifications/read", json={"id": notification_id}, headers=USER_HEADERS
    )
    listed = await test_async_client.get("/notifications", headers=USER_HEADERS)
    deleted = await test_async_client.delete(
        f"/notifications/{notification_id}",
        params={"email": "alice@example.com"},
        headers=USER_HEADERS,
    )

    # Then
    assert read.json() == {"ok": True}
    assert listed.json()["unreadCount"] == 0
    assert listed.json()["notifications"][0]["read"] is True
    assert deleted.status_code == HTTPStatus.OK
    assert (await test_async_client.get("/notifications", headers=USER_HEADERS)).json() == {
        "notifications": [],
        "unreadCount": 0,
    }


@pytest.mark.asyncio
async def test_admin_notification_requires_admin(test_async_client: AsyncClient):
    response = await test_async_client.post(
        "/admin/notifications",
        json={"userEmail": "alice@example.com", "title": "Hi", "message": "Welcome"},
        headers=USER_HEADERS,
    )

    assert response.status_code == HTTPStatus.FORBIDDEN


@pytest.mark.asyncio
async def test_delete_someone_elses_notification(test_async_client: AsyncClient):
    # Given
    created = await test_async_client.post(
        "/admin/notifications",
        json={"userEmail": "bob@example.com", "title": "Hi", "message": "Welcome"},
        headers=ADMIN_HEADERS,
    )

    # When
    response = await test_async_client.delete(
        f"/notifications/{created.json()['id']}",
        params={"email": "bob@example.com"},
        headers=USER_HEADERS,
    )

    # Then
    assert response.status_code == HTTPStatus.NOT_FOUND


@pytest.mark.asyncio
async def test_soft_delete_and_restore_user(
    test_async_client: AsyncClient, user_factory, kafka_producer
):
    # Given
    user = await user_factory()

    # When
    deleted = await test_async_client.delete(f"/admin/users/{user.id}", headers=ADMIN_HEADERS)
    listed = await test_async_client.get("/admin/deleted-users", headers=ADMIN_HEADERS)
    restored = await test_async_client.delete(
        f"/admin/deleted-users/{user.id}", headers=ADMIN_HEADERS
    )
    restored_again = await test_async_client.delete(
        f"/admin/deleted-users/{user.id}", headers=ADMIN_HEADERS
    )

    # Then
    assert deleted.json() == {"ok": True, "emailBlocked": True, "emailSent": True}
    assert listed.json() == {
        "users": [
            {"id": user.id, "name": "Bob", "email": "bob@example.com", "deletedAt": ANY}
        ]
    }
    assert restored.json() == {"ok": True}
    assert restored_again.status_code == HTTPStatus.NOT_FOUND
    assert (await test_async_client.get("/admin/deleted-users", headers=ADMIN_HEADERS)).json() == {
        "users": []
    }
    assert kafka_producer.send_message.await_count == 2


@pytest.mark.asyncio
async def test_restore_with_malformed_id(test_async_client: AsyncClient):
    response = await test_async_client.delete(
        "/admin/deleted-users/not-an-id", headers=ADMIN_HEADERS
    )

    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.json() == {"error": "validation_error", "message": "Invalid id"}


@pytest.mark.asyncio
async def test_quote_is_unavailable(test_async_client: AsyncClient):
    response = await test_async_client.post("/quote", json={})

    assert response.status_code == HTTPStatus.SERVICE_UNAVAILABLE
    assert "unavailable" in response.json()["message"]


@pytest.mark.asyncio
async def test_unexpected_error_is_generic(test_async_client: AsyncClient, monkeypatch):
    # Given
    monkeypatch.setattr(
        ShipmentLifecycleManager,
        "list_for_owner",
        AsyncMock(side_effect=RuntimeError("connection string leaked")),
    )

    # When
    response = await test_async_client.get("/shipments", headers=USER_HEADERS)

    # Then
    assert response.status_code == HTTPStatus.INTERNAL_SERVER_ERROR
    assert response.json() == {"error": "internal_error", "message": "Server error"}


@pytest.mark.asyncio
async def test_status_catalogue(test_async_client: AsyncClient):
    # Given
    saved = await test_async_client.post(
        "/admin/statuses",
        json={"label": "On Hold", "color": "Yellow", "defaultUpdate": "Held at depot."},
        headers=ADMIN_HEADERS,
    )

    # When
    listed = await test_async_client.get("/statuses")
    single = await test_async_client.get("/statuses/on-hold")

    # Then
    assert saved.status_code == HTTPStatus.OK
    assert saved.json() == {
        "ok": True,
        "status": {
            "key": "onhold",
            "label": "On Hold",
            "color": "yellow",
            "defaultUpdate": "Held at depot.",
            "nextStep": "",
        },
    }
    assert [s["key"] for s in listed.json()["statuses"]] == [
        "created",
        "customclearance",
        "delivered",
        "intransit",
        "onhold",
        "unclaimed",
    ]
    assert single.json()["status"]["label"] == "On Hold"


@pytest.mark.asyncio
async def test_status_catalogue_errors(test_async_client: AsyncClient):
    blank = await test_async_client.post(
        "/admin/statuses", json={"label": " "}, headers=ADMIN_HEADERS
    )
    as_user = await test_async_client.post(
        "/admin/statuses", json={"label": "On Hold"}, headers=USER_HEADERS
    )
    unknown = await test_async_client.get("/statuses/lost")

    assert blank.status_code == HTTPStatus.BAD_REQUEST
    assert blank.json() == {"error": "validation_error", "message": "Label is required."}
    assert as_user.status_code == HTTPStatus.FORBIDDEN
    assert unknown.status_code == HTTPStatus.NOT_FOUND


@pytest.mark.asyncio
async def test_patch_shipment_uses_catalogue(test_async_client: AsyncClient, shipment_factory):
    # Given
    await shipment_factory(shipment_id="EXS-240101-ABCDEF")

    # When
    response = await test_async_client.patch(
        "/admin/shipments/EXS-240101-ABCDEF",
        json={"status": "delivered"},
        headers=ADMIN_HEADERS,
    )

    # Then
    assert response.status_code == HTTPStatus.OK
    shipment = response.json()["shipment"]
    assert shipment["status"] == "Delivered"
    assert shipment["statusNote"] == "Shipment has been delivered successfully to the destination."
    assert shipment["statusColor"] == "green"


@pytest.mark.asyncio
async def test_invoice_payment_update(test_async_client: AsyncClient, shipment_factory):
    # Given
    await shipment_factory(shipment_id="EXS-240101-ABCDEF")

    # When
    response = await test_async_client.patch(
        "/admin/shipments/EXS-240101-ABCDEF/invoice",
        json={"paid": True},
        headers=ADMIN_HEADERS,
    )

    # Then
    assert response.status_code == HTTPStatus.OK
    invoice = response.json()["shipment"]["invoice"]
    assert invoice["paid"] is True
    assert invoice["paidAt"] is not None

    notifications = (
        await test_async_client.get("/notifications", headers=USER_HEADERS)
    ).json()["notifications"]
    assert notifications[0]["title"] == "Invoice Updated"
    assert notifications[0]["message"] == "Invoice for shipment EXS-240101-ABCDEF is now PAID."


@pytest.mark.asyncio
async def test_invoice_payment_update_requires_admin(
    test_async_client: AsyncClient, shipment_factory
):
    await shipment_factory(shipment_id="EXS-240101-ABCDEF")

    response = await test_async_client.patch(
        "/admin/shipments/EXS-240101-ABCDEF/invoice",
        json={"paid": True},
        headers=USER_HEADERS,
    )

    assert response.status_code == HTTPStatus.FORBIDDEN


@pytest.mark.asyncio
async def test_invoice_lookup(test_async_client: AsyncClient, shipment_factory):
    # Given
    await shipment_factory(
        shipment_id="EXS-240101-ABCDEF",
        tracking_number="EX24US1234567A",
        invoice={"amount": Decimal("12.50"), "currency": "usd", "paid": False},
    )

    # When
    found = await test_async_client.get(
        "/invoice", params={"q": "ex24us1234567a"}, headers=USER_HEADERS
    )
    hidden = await test_async_client.get(
        "/invoice", params={"q": "EXS-240101-ABCDEF"}, headers=BOB_HEADERS
    )
    blank = await test_async_client.get("/invoice", headers=USER_HEADERS)

    # Then
    assert found.status_code == HTTPStatus.OK
    invoice = found.json()["invoice"]
    assert invoice["invoiceNumber"] == "INV-EXS-240101-ABCDEF"
    assert invoice["status"] == "pending"
    assert invoice["currency"] == "USD"
    assert Decimal(invoice["total"]) == Decimal("12.5")
    assert invoice["shipment"]["trackingNumber"] == "EX24US1234567A"
    assert invoice["parties"] == {
        "senderName": "Sender",
        "receiverName": "Receiver",
        "receiverEmail": "alice@example.com",
    }
    assert hidden.status_code == HTTPStatus.NOT_FOUND
    assert hidden.json() == {"error": "not_found", "message": "Shipment not found"}
    assert blank.status_code == HTTPStatus.BAD_REQUEST


@pytest.mark.asyncio
async def test_error_body_is_documented(test_async_client: AsyncClient):
    # When
    schema = (await test_async_client.get("/openapi.json")).json()

    # Then
    assert "ErrorResponseModel" in schema["components"]["schemas"]
    responses = schema["paths"]["/shipments"]["get"]["responses"]
    for code in ("400", "401", "403", "404", "500"):
        assert responses[code]["content"]["application/json"]["schema"] == {
            "$ref": "#/components/schemas/ErrorResponseModel"
        }
