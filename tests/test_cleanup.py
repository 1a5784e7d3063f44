import pytest

from marketplace import config


@pytest.fixture
def cleanup_secret(monkeypatch):
    monkeypatch.setattr(config, "CLEANUP_SECRET", "reset-me")
    return "reset-me"


async def test_cleanup_disabled_without_secret(client):
    assert (await client.get("/cleanup/status")).status_code == 404
    resp = await client.post("/cleanup/reset-all", headers={"X-Cleanup-Secret": "anything"})
    assert resp.status_code == 404


async def test_reset_all(client, cleanup_secret, active_booking, open_request):
    c, m, selected = await active_booking()
    await open_request(c, issue="another")
    await client.post(
        "/chat/send",
        json={"bookingId": selected["booking"]["id"], "message": "hi"},
        headers=c.headers,
    )

    resp = await client.get("/cleanup/status")
    assert resp.json()["counts"] == {"serviceRequests": 2, "bookings": 1}

    resp = await client.post("/cleanup/reset-all", headers={"X-Cleanup-Secret": "wrong"})
    assert resp.status_code == 401

    resp = await client.post("/cleanup/reset-all", headers={"X-Cleanup-Secret": cleanup_secret})
    assert resp.status_code == 200
    assert resp.json()["deleted"] == {"serviceRequests": 2, "bookings": 1}

    resp = await client.get("/cleanup/status")
    assert resp.json()["counts"] == {"serviceRequests": 0, "bookings": 0}

    # users survive a reset
    resp = await client.get("/auth/me", headers=c.headers)
    assert resp.status_code == 200
