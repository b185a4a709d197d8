"""
Integration tests for the HTTP surface.

Walks a parcel from booking through payment, assignment and delivery, and
checks ownership rules on the way.
"""

import pytest

from conftest import parcel_payload
from parcelflow.app.models.enums import UserRole


@pytest.fixture
async def admin_headers(sign_in):
    return await sign_in("admin@test.com", UserRole.ADMIN)


@pytest.fixture
async def sender_headers(sign_in):
    return await sign_in("sender@test.com")


async def approved_rider(client, sign_in, admin_headers, email="rider@test.com"):
    """Register, apply and approve a rider; returns (rider_id, headers)."""
    headers = await sign_in(email)
    response = await client.post("/v1/riders", json={
        "name": "Rahim",
        "email": email,
        "phone": "01700000000",
        "age": 25,
        "nid": "1234567890",
        "bike_info": "Honda CB 150",
        "rider_region": "Dhaka",
        "rider_district": "Dhaka",
    })
    assert response.status_code == 201
    rider_id = response.json()["id"]

    response = await client.patch(f"/v1/riders/{rider_id}", json={"status": "approved"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["work_status"] == "available"
    return rider_id, headers


@pytest.mark.asyncio
async def test_health_and_root(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

    response = await client.get("/")
    assert response.status_code == 200
    assert "X-Correlation-ID" in response.headers


@pytest.mark.asyncio
async def test_register_user_is_idempotent(client):
    first = await client.post("/v1/users", json={"email": "new@test.com", "display_name": "New"})
    second = await client.post("/v1/users", json={"email": "new@test.com", "display_name": "Other"})

    assert first.json()["created"] is True
    assert first.json()["user"]["role"] == "user"
    assert second.json()["created"] is False
    assert second.json()["user"]["display_name"] == "New"


@pytest.mark.asyncio
async def test_user_role_lookup_and_admin_update(client, sign_in, admin_headers):
    headers = await sign_in("user@test.com")

    response = await client.get("/v1/users/user@test.com/role", headers=headers)
    assert response.json() == {"role": "user"}
    response = await client.get("/v1/users/ghost@test.com/role", headers=headers)
    assert response.json() == {"role": "user"}

    users = (await client.get("/v1/users?search=user@", headers=admin_headers)).json()
    assert users["total"] == 1
    user_id = users["users"][0]["id"]

    response = await client.patch(f"/v1/users/{user_id}/role", json={"role": "admin"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["role"] == "admin"

    response = await client.patch("/v1/users/999/role", json={"role": "admin"}, headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_rider_application_flow(client, sign_in, admin_headers):
    rider_id, rider_headers = await approved_rider(client, sign_in, admin_headers)

    # Approval promoted the user
    response = await client.get("/v1/users/rider@test.com/role", headers=rider_headers)
    assert response.json() == {"role": "rider"}

    duplicate = await client.post("/v1/riders", json={"name": "Again", "email": "rider@test.com"})
    assert duplicate.status_code == 409

    listing = (await client.get(
        "/v1/riders?status=approved&work_status=available&district=Dhaka", headers=admin_headers
    )).json()
    assert listing["total"] == 1
    assert listing["riders"][0]["id"] == rider_id

    notes = (await client.get("/v1/notifications", headers=admin_headers)).json()
    assert [note["type"] for note in notes] == ["rider-application"]


@pytest.mark.asyncio
async def test_invalid_rider_application(client):
    response = await client.post("/v1/riders", json={"email": "x@test.com"})
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_parcel_booking_ownership(client, sign_in, sender_headers, admin_headers):
    response = await client.post("/v1/parcels", json=parcel_payload("someone-else@test.com"), headers=sender_headers)
    assert response.status_code == 403

    response = await client.post("/v1/parcels", json=parcel_payload(), headers=sender_headers)
    assert response.status_code == 201
    parcel = response.json()
    assert parcel["delivery_status"] == "pending"
    assert parcel["payment_status"] == "unpaid"

    stranger = await sign_in("stranger@test.com")
    assert (await client.get(f"/v1/parcels/{parcel['id']}", headers=stranger)).status_code == 403
    assert (await client.get(f"/v1/parcels/{parcel['id']}", headers=sender_headers)).status_code == 200
    assert (await client.get(f"/v1/parcels/{parcel['id']}", headers=admin_headers)).status_code == 200
    assert (await client.get("/v1/parcels/9999", headers=admin_headers)).status_code == 404

    # Senders only see their own parcels, admins see all
    assert len((await client.get("/v1/parcels", headers=stranger)).json()) == 0
    assert len((await client.get("/v1/parcels", headers=sender_headers)).json()) == 1
    assert (await client.get("/v1/parcels?email=sender@test.com", headers=stranger)).status_code == 403
    assert len((await client.get("/v1/parcels", headers=admin_headers)).json()) == 1

    assert (await client.delete(f"/v1/parcels/{parcel['id']}", headers=stranger)).status_code == 403
    assert (await client.delete(f"/v1/parcels/{parcel['id']}", headers=sender_headers)).status_code == 204
    assert (await client.get(f"/v1/parcels/{parcel['id']}", headers=sender_headers)).status_code == 404


@pytest.mark.asyncio
async def test_parcel_validation_error(client, sender_headers):
    response = await client.post("/v1/parcels", json=parcel_payload(amount=-1), headers=sender_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_full_delivery_flow(client, sign_in, sender_headers, admin_headers, gateway):
    rider_id, rider_headers = await approved_rider(client, sign_in, admin_headers)

    parcel = (await client.post("/v1/parcels", json=parcel_payload(amount=100), headers=sender_headers)).json()
    tracking_id = parcel["tracking_id"]

    # Pay
    checkout = await client.post("/v1/create-checkout-session", json={"parcel_id": parcel["id"]}, headers=sender_headers)
    assert checkout.status_code == 200
    session_id = checkout.json()["session_id"]
    assert checkout.json()["url"].endswith(session_id)
    gateway.complete(session_id)

    first = await client.patch(f"/v1/payment-success?session_id={session_id}")
    second = await client.patch(f"/v1/payment-success?session_id={session_id}")
    assert first.status_code == 200 and second.status_code == 200
    assert first.json()["success"] is True and first.json()["already_recorded"] is False
    assert second.json()["already_recorded"] is True
    assert first.json()["tracking_id"] == second.json()["tracking_id"] == tracking_id
    assert first.json()["amount"] == second.json()["amount"] == 100

    history = (await client.get("/v1/payment-history", headers=sender_headers)).json()
    assert len(history) == 1
    assert history[0]["tracking_id"] == tracking_id

    # Assign
    response = await client.patch(
        f"/v1/parcels/{parcel['id']}/assign", json={"rider_id": rider_id}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["parcel"]["delivery_status"] == "rider-assigned"
    assert response.json()["rider_work_status"] == "in-delivery"

    # Busy rider cannot take another parcel
    other = (await client.post("/v1/parcels", json=parcel_payload(), headers=sender_headers)).json()
    response = await client.patch(
        f"/v1/parcels/{other['id']}/assign", json={"rider_id": rider_id}, headers=admin_headers
    )
    assert response.status_code == 409

    # Rider works the parcel
    active = (await client.get("/v1/parcels/rider", headers=rider_headers)).json()
    assert [p["tracking_id"] for p in active] == [tracking_id]
    assert (await client.get(f"/v1/parcels/{parcel['id']}", headers=rider_headers)).status_code == 200

    for next_status in ("in-transit", "delivered"):
        response = await client.patch(
            f"/v1/parcels/{parcel['id']}/delivery-status",
            json={"delivery_status": next_status},
            headers=rider_headers,
        )
        assert response.status_code == 200
        assert response.json()["delivery_status"] == next_status

    response = await client.patch(
        f"/v1/parcels/{parcel['id']}/delivery-status",
        json={"delivery_status": "in-transit"},
        headers=rider_headers,
    )
    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_CONFLICT_002"

    assert (await client.get("/v1/parcels/rider", headers=rider_headers)).json() == []
    delivered = (await client.get("/v1/parcels/rider?delivery_status=delivered", headers=rider_headers)).json()
    assert [p["tracking_id"] for p in delivered] == [tracking_id]

    riders = (await client.get("/v1/riders?work_status=available", headers=admin_headers)).json()
    assert riders["total"] == 1

    per_day = (await client.get("/v1/riders/delivery-per-day", headers=rider_headers)).json()
    assert per_day[0]["delivered_count"] == 1

    # Public tracking history
    events = (await client.get(f"/v1/trackings/{tracking_id}")).json()
    assert [event["status"] for event in events] == [
        "parcel-created", "parcel-paid", "rider-assigned", "in-transit", "delivered",
    ]

    stats = {row["status"]: row["count"] for row in (await client.get(
        "/v1/parcels/delivery-stats", headers=admin_headers
    )).json()}
    assert stats == {"delivered": 1, "pending": 1}

    notes = (await client.get("/v1/notifications?unread_only=true", headers=admin_headers)).json()
    assert {note["type"] for note in notes} == {"rider-application", "new-order", "payment-received"}
    response = await client.patch("/v1/notifications/read-all", headers=admin_headers)
    assert response.json()["count"] == len(notes)
    assert (await client.patch("/v1/notifications/999/read", headers=admin_headers)).status_code == 404


@pytest.mark.asyncio
async def test_rider_cannot_move_someone_elses_parcel(client, sign_in, sender_headers, admin_headers):
    rider_id, _ = await approved_rider(client, sign_in, admin_headers)
    _, intruder_headers = await approved_rider(client, sign_in, admin_headers, email="intruder@test.com")

    parcel = (await client.post("/v1/parcels", json=parcel_payload(), headers=sender_headers)).json()
    await client.patch(f"/v1/parcels/{parcel['id']}/assign", json={"rider_id": rider_id}, headers=admin_headers)

    response = await client.patch(
        f"/v1/parcels/{parcel['id']}/delivery-status",
        json={"delivery_status": "delivered"},
        headers=intruder_headers,
    )
    assert response.status_code == 403
    assert (await client.get(f"/v1/parcels/{parcel['id']}", headers=intruder_headers)).status_code == 403


@pytest.mark.asyncio
async def test_checkout_requires_ownership(client, sign_in, sender_headers):
    parcel = (await client.post("/v1/parcels", json=parcel_payload(), headers=sender_headers)).json()
    stranger = await sign_in("stranger@test.com")

    response = await client.post("/v1/create-checkout-session", json={"parcel_id": parcel["id"]}, headers=stranger)
    assert response.status_code == 403

    response = await client.get("/v1/payment-history?email=sender@test.com", headers=stranger)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unpaid_session_confirmation(client, sender_headers):
    parcel = (await client.post("/v1/parcels", json=parcel_payload(), headers=sender_headers)).json()
    session_id = (await client.post(
        "/v1/create-checkout-session", json={"parcel_id": parcel["id"]}, headers=sender_headers
    )).json()["session_id"]

    response = await client.patch(f"/v1/payment-success?session_id={session_id}")
    assert response.status_code == 200
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_unknown_tracking_id_is_empty(client):
    response = await client.get("/v1/trackings/TRK-20250101-0000-NOPE00")
    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_delivery_body_cannot_release_another_rider(client, sign_in, sender_headers, admin_headers):
    mine_id, mine_headers = await approved_rider(client, sign_in, admin_headers, email="mine@test.com")
    theirs_id, _ = await approved_rider(client, sign_in, admin_headers, email="theirs@test.com")

    my_parcel = (await client.post("/v1/parcels", json=parcel_payload(), headers=sender_headers)).json()
    their_parcel = (await client.post("/v1/parcels", json=parcel_payload(), headers=sender_headers)).json()
    await client.patch(f"/v1/parcels/{my_parcel['id']}/assign", json={"rider_id": mine_id}, headers=admin_headers)
    await client.patch(f"/v1/parcels/{their_parcel['id']}/assign", json={"rider_id": theirs_id}, headers=admin_headers)

    response = await client.patch(
        f"/v1/parcels/{my_parcel['id']}/delivery-status",
        json={"delivery_status": "delivered", "rider_email": "theirs@test.com"},
        headers=mine_headers,
    )
    assert response.status_code == 200

    available = (await client.get("/v1/riders?work_status=available", headers=admin_headers)).json()
    busy = (await client.get("/v1/riders?work_status=in-delivery", headers=admin_headers)).json()
    assert [rider["email"] for rider in available["riders"]] == ["mine@test.com"]
    assert [rider["email"] for rider in busy["riders"]] == ["theirs@test.com"]


@pytest.mark.asyncio
async def test_reapproving_busy_rider_keeps_them_busy(client, sign_in, sender_headers, admin_headers):
    rider_id, _ = await approved_rider(client, sign_in, admin_headers)
    first = (await client.post("/v1/parcels", json=parcel_payload(), headers=sender_headers)).json()
    second = (await client.post("/v1/parcels", json=parcel_payload(), headers=sender_headers)).json()
    await client.patch(f"/v1/parcels/{first['id']}/assign", json={"rider_id": rider_id}, headers=admin_headers)

    response = await client.patch(f"/v1/riders/{rider_id}", json={"status": "approved"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["work_status"] == "in-delivery"

    response = await client.patch(
        f"/v1/parcels/{second['id']}/assign", json={"rider_id": rider_id}, headers=admin_headers
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_get_user_by_id(client, sign_in, admin_headers):
    headers = await sign_in("user@test.com")
    stranger = await sign_in("stranger@test.com")
    users = (await client.get("/v1/users?search=user@test.com", headers=admin_headers)).json()
    user_id = users["users"][0]["id"]

    response = await client.get(f"/v1/users/{user_id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["email"] == "user@test.com"

    assert (await client.get(f"/v1/users/{user_id}", headers=admin_headers)).status_code == 200
    assert (await client.get(f"/v1/users/{user_id}", headers=stranger)).status_code == 403
    assert (await client.get("/v1/users/9999", headers=admin_headers)).status_code == 404
    assert (await client.get(f"/v1/users/{user_id}")).status_code == 401
