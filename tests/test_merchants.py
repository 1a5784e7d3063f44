async def test_health_and_catalog(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "OK"

    resp = await client.get("/services")
    assert resp.status_code == 200
    names = [s["name"] for s in resp.json()]
    assert names == ["Electrician", "Plumber", "AC Technician", "Carpenter", "Painter"]


async def test_list_merchants_is_public_and_sorted_by_rating(client, merchant):
    first = await merchant("First")
    await merchant("Second")

    resp = await client.get("/merchants")
    assert resp.status_code == 200
    assert len(resp.json()) == 2

    resp = await client.get(f"/merchants/{first.id}")
    assert resp.status_code == 200
    body = resp.json()
    assert body["user"]["name"] == "First"
    assert "cnic" not in body

    assert (await client.get("/merchants/unknown")).status_code == 404


async def test_update_profile(client, merchant):
    m = await merchant(skill="Plumber")

    resp = await client.post(
        "/merchants/update",
        json={"skillCategory": "Painter", "price": 1500, "availability": "online", "certifications": ["NAVTTC"]},
        headers=m.headers,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["skillCategory"] == "Painter"
    assert body["price"] == 1500
    assert body["availability"] == "online"
    assert body["certifications"] == ["NAVTTC"]
    assert body["yearsExperience"] == 3

    resp = await client.post("/merchants/update", json={"skillCategory": "Astronaut"}, headers=m.headers)
    assert resp.status_code == 400
    resp = await client.post("/merchants/update", json={"availability": "busy"}, headers=m.headers)
    assert resp.status_code == 400


async def test_skill_change_moves_available_requests(client, merchant, customer, open_request):
    m = await merchant(skill="Plumber")
    c = await customer()
    await open_request(c, service_type="Painter", issue="walls")

    resp = await client.get("/service-requests/available", headers=m.headers)
    assert resp.json() == []

    await client.post("/merchants/update", json={"skillCategory": "Painter"}, headers=m.headers)
    resp = await client.get("/service-requests/available", headers=m.headers)
    assert [r["issue"] for r in resp.json()] == ["walls"]


async def test_customer_cannot_update_profile(client, customer):
    c = await customer()
    resp = await client.post("/merchants/update", json={"price": 1}, headers=c.headers)
    assert resp.status_code == 403


async def test_portfolio(client, merchant):
    m = await merchant()
    resp = await client.post(
        "/merchants/portfolio",
        json={"profilePicture": "https://img/p.png", "previousWorkImages": ["https://img/1.png", "https://img/2.png"]},
        headers=m.headers,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["profilePicture"] == "https://img/p.png"
    assert body["previousWorkImages"] == ["https://img/1.png", "https://img/2.png"]
