import asyncio

import pytest


async def test_full_request_to_completion_scenario(client, customer, merchant, open_request, offer):
    c = await customer()
    m1 = await merchant("M1")
    m2 = await merchant("M2")

    sr = await open_request(c, service_type="Plumber", issue="leak", location="X")
    assert sr["status"] == "pending"
    assert sr["acceptedMerchants"] == []
    assert sr["selectedMerchantId"] is None
    assert sr["bookingId"] is None

    resp = await offer(m1, sr["id"], price=500)
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "offerSubmitted"
    assert [o["merchantId"] for o in body["acceptedMerchants"]] == [m1.id]

    resp = await offer(m2, sr["id"], price=450, negotiable=True)
    assert resp.status_code == 200
    offers = resp.json()["acceptedMerchants"]
    assert [o["merchantId"] for o in offers] == [m1.id, m2.id]
    assert offers[1]["price"] == 450
    assert offers[1]["negotiable"] is True
    assert offers[1]["merchant"]["name"] == "M2"

    resp = await client.post(
        "/service-requests/select-merchant",
        json={"requestId": sr["id"], "merchantId": m2.id},
        headers=c.headers,
    )
    assert resp.status_code == 200, resp.text
    selected = resp.json()
    request_after = selected["serviceRequest"]
    booking = selected["booking"]
    assert request_after["status"] == "active"
    assert request_after["selectedMerchantId"] == m2.id
    assert request_after["bookingId"] == booking["id"]
    assert booking["status"] == "active"
    assert booking["price"] == 450
    assert booking["address"] == "X"
    assert booking["notes"] == "leak"
    assert booking["customerId"] == c.id
    assert booking["merchantId"] == m2.id

    resp = await client.patch(
        "/bookings/status",
        json={"bookingId": booking["id"], "status": "completed"},
        headers=m2.headers,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "completed"

    resp = await client.get(f"/service-requests/{sr['id']}", headers=c.headers)
    assert resp.json()["status"] == "completed"

    resp = await client.get(f"/bookings/merchant/{m2.id}", headers=m2.headers)
    assert resp.status_code == 200
    assert resp.json() == []


async def test_merchant_only_user_cannot_create_request(client, merchant):
    m = await merchant()
    resp = await client.post(
        "/service-requests/create",
        json={"serviceType": "Plumber", "issue": "leak", "location": "X"},
        headers=m.headers,
    )
    assert resp.status_code == 403
    assert resp.json()["code"] == "forbidden"


async def test_create_request_requires_all_fields(client, customer):
    c = await customer()
    resp = await client.post(
        "/service-requests/create",
        json={"serviceType": "Plumber", "issue": "   "},
        headers=c.headers,
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "validation"


async def test_create_request_requires_token(client):
    resp = await client.post(
        "/service-requests/create",
        json={"serviceType": "Plumber", "issue": "leak", "location": "X"},
    )
    assert resp.status_code == 401


async def test_customer_only_user_cannot_offer(client, customer, open_request, offer):
    c = await customer()
    other = await customer("Other")
    sr = await open_request(c)

    resp = await offer(other, sr["id"])
    assert resp.status_code == 403


async def test_offer_requires_positive_price(client, customer, merchant, open_request, offer):
    c = await customer()
    m = await merchant()
    sr = await open_request(c)

    for price in (0, -10, None):
        resp = await offer(m, sr["id"], price=price)
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation"

    resp = await client.get(f"/service-requests/{sr['id']}", headers=c.headers)
    assert resp.json()["status"] == "pending"


async def test_offer_on_missing_request_is_404(client, merchant, offer):
    m = await merchant()
    resp = await offer(m, "does-not-exist")
    assert resp.status_code == 404


async def test_duplicate_offer_rejected(client, customer, merchant, open_request, offer):
    c = await customer()
    m = await merchant()
    sr = await open_request(c)

    assert (await offer(m, sr["id"], price=100)).status_code == 200
    resp = await offer(m, sr["id"], price=90)
    assert resp.status_code == 400
    assert resp.json()["code"] == "conflict"

    resp = await client.get(f"/service-requests/{sr['id']}", headers=c.headers)
    offers = resp.json()["acceptedMerchants"]
    assert len(offers) == 1
    assert offers[0]["price"] == 100


async def test_offer_list_capped_at_ten(client, customer, merchant, open_request, offer):
    c = await customer()
    sr = await open_request(c)

    for i in range(10):
        m = await merchant(f"M{i}")
        assert (await offer(m, sr["id"], price=100 + i)).status_code == 200

    late = await merchant("Late")
    resp = await offer(late, sr["id"], price=50)
    assert resp.status_code == 400
    assert resp.json()["code"] == "conflict"

    resp = await client.get(f"/service-requests/{sr['id']}", headers=c.headers)
    offers = resp.json()["acceptedMerchants"]
    assert len(offers) == 10
    assert late.id not in {o["merchantId"] for o in offers}


async def test_offer_on_resolved_request_rejected_and_unchanged(client, active_booking, merchant, offer):
    c, m, selected = await active_booking()
    request_id = selected["serviceRequest"]["id"]
    newcomer = await merchant("Newcomer")

    resp = await offer(newcomer, request_id, price=10)
    assert resp.status_code == 400
    assert resp.json()["code"] == "conflict"

    resp = await client.get(f"/service-requests/{request_id}", headers=c.headers)
    body = resp.json()
    assert body["status"] == "active"
    assert [o["merchantId"] for o in body["acceptedMerchants"]] == [m.id]


async def test_select_merchant_without_offer_fails_and_leaves_request(client, customer, merchant, open_request, offer):
    c = await customer()
    m1 = await merchant("M1")
    m2 = await merchant("M2")
    sr = await open_request(c)
    assert (await offer(m1, sr["id"])).status_code == 200

    resp = await client.post(
        "/service-requests/select-merchant",
        json={"requestId": sr["id"], "merchantId": m2.id},
        headers=c.headers,
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "conflict"

    resp = await client.get(f"/service-requests/{sr['id']}", headers=c.headers)
    body = resp.json()
    assert body["status"] == "offerSubmitted"
    assert body["selectedMerchantId"] is None
    assert body["bookingId"] is None

    resp = await client.get(f"/bookings/user/{c.id}", headers=c.headers)
    assert resp.json() == []


async def test_only_owner_can_select_merchant(client, customer, merchant, open_request, offer):
    owner = await customer("Owner")
    intruder = await customer("Intruder")
    m = await merchant()
    sr = await open_request(owner)
    assert (await offer(m, sr["id"])).status_code == 200

    resp = await client.post(
        "/service-requests/select-merchant",
        json={"requestId": sr["id"], "merchantId": m.id},
        headers=intruder.headers,
    )
    assert resp.status_code == 403


async def test_merchant_cannot_be_selected_twice(client, active_booking):
    c, m, selected = await active_booking()

    resp = await client.post(
        "/service-requests/select-merchant",
        json={"requestId": selected["serviceRequest"]["id"], "merchantId": m.id},
        headers=c.headers,
    )
    assert resp.status_code == 400

    resp = await client.get(f"/bookings/user/{c.id}", headers=c.headers)
    assert len(resp.json()) == 1


async def test_available_listing_filters(client, customer, merchant, open_request, offer):
    c = await customer()
    plumber = await merchant("Plumber", skill="Plumber")
    rival = await merchant("Rival", skill="Plumber")
    painter = await merchant("Painter", skill="Painter")

    open_one = await open_request(c, service_type="Plumber", issue="drip")
    offered = await open_request(c, service_type="Plumber", issue="clog")
    resolved = await open_request(c, service_type="Plumber", issue="burst")
    await open_request(c, service_type="Painter", issue="walls")

    assert (await offer(plumber, offered["id"])).status_code == 200
    assert (await offer(rival, resolved["id"])).status_code == 200
    resp = await client.post(
        "/service-requests/select-merchant",
        json={"requestId": resolved["id"], "merchantId": rival.id},
        headers=c.headers,
    )
    assert resp.status_code == 200

    resp = await client.get("/service-requests/available", headers=plumber.headers)
    assert resp.status_code == 200
    assert [r["id"] for r in resp.json()] == [open_one["id"]]

    resp = await client.get("/service-requests/available", headers=painter.headers)
    assert [r["issue"] for r in resp.json()] == ["walls"]


async def test_available_listing_requires_merchant(client, customer):
    c = await customer()
    resp = await client.get("/service-requests/available", headers=c.headers)
    assert resp.status_code == 403


async def test_customer_request_listing(client, customer, open_request):
    c = await customer()
    other = await customer("Other")
    await open_request(c, issue="one")
    await open_request(c, issue="two")
    await open_request(other, issue="theirs")

    resp = await client.get(f"/service-requests/customer/{c.id}", headers=c.headers)
    assert resp.status_code == 200
    assert sorted(r["issue"] for r in resp.json()) == ["one", "two"]


async def test_get_unknown_request_is_404(client, customer):
    c = await customer()
    resp = await client.get("/service-requests/nope", headers=c.headers)
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Service request not found", "code": "not_found"}


@pytest.mark.parametrize("raw", ["NaN", "Infinity", "-Infinity"])
async def test_offer_rejects_non_finite_price(client, customer, merchant, open_request, raw):
    c = await customer()
    m = await merchant()
    sr = await open_request(c)

    resp = await client.post(
        "/service-requests/accept",
        content=f'{{"requestId": "{sr["id"]}", "price": {raw}}}',
        headers={**m.headers, "Content-Type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "validation"

    resp = await client.get(f"/service-requests/{sr['id']}", headers=c.headers)
    assert resp.json()["acceptedMerchants"] == []
    assert resp.json()["status"] == "pending"


async def test_concurrent_offers_respect_cap(client, customer, merchant, open_request, offer):
    c = await customer()
    sr = await open_request(c)
    for i in range(9):
        m = await merchant(f"M{i}")
        assert (await offer(m, sr["id"], price=100 + i)).status_code == 200

    racers = [await merchant(f"Racer{i}") for i in range(3)]
    responses = await asyncio.gather(*(offer(m, sr["id"], price=80) for m in racers))

    assert sorted(r.status_code for r in responses) == [200, 400, 400]
    for resp in responses:
        if resp.status_code == 400:
            assert resp.json()["code"] == "conflict"

    resp = await client.get(f"/service-requests/{sr['id']}", headers=c.headers)
    assert len(resp.json()["acceptedMerchants"]) == 10


async def test_concurrent_selections_create_one_booking(client, customer, merchant, open_request, offer):
    c = await customer()
    m1 = await merchant("M1")
    m2 = await merchant("M2")
    sr = await open_request(c)
    assert (await offer(m1, sr["id"], price=300)).status_code == 200
    assert (await offer(m2, sr["id"], price=250)).status_code == 200

    responses = await asyncio.gather(
        *(
            client.post(
                "/service-requests/select-merchant",
                json={"requestId": sr["id"], "merchantId": m.id},
                headers=c.headers,
            )
            for m in (m1, m2)
        )
    )
    assert sorted(r.status_code for r in responses) == [200, 400]
    winner = next(r.json() for r in responses if r.status_code == 200)

    resp = await client.get(f"/bookings/user/{c.id}", headers=c.headers)
    assert [b["id"] for b in resp.json()] == [winner["booking"]["id"]]

    resp = await client.get(f"/service-requests/{sr['id']}", headers=c.headers)
    body = resp.json()
    assert body["status"] == "active"
    assert body["bookingId"] == winner["booking"]["id"]
    assert body["selectedMerchantId"] == winner["booking"]["merchantId"]
