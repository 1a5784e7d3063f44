import itertools
import os
import tempfile

_tmp = tempfile.mkdtemp(prefix="marketplace-tests-")

# must be set before anything imports marketplace.config
os.environ["MARKETPLACE_DB"] = f"sqlite+aiosqlite:///{_tmp}/marketplace.db"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.pop("RABBIT_URL", None)
os.environ.pop("REDIS_URL", None)
os.environ.pop("CLEANUP_SECRET", None)

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from marketplace.db import Base, engine  # noqa: E402
from marketplace.main import app  # noqa: E402

_emails = itertools.count(1)


@pytest_asyncio.fixture
async def client():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


class Account:
    def __init__(self, user: dict, token: str):
        self.user = user
        self.token = token

    @property
    def id(self) -> str:
        return self.user["id"]

    @property
    def headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
def register(client):
    async def _register(name="User", roles=("customer",), skill=None, **extra):
        body = {
            "name": name,
            "email": f"user{next(_emails)}@example.com",
            "password": "secret123",
            "roles": list(roles),
            "phone": "0300-0000000",
        }
        if skill is not None:
            body["merchantData"] = {"skillCategory": skill, "yearsExperience": 3}
        body.update(extra)
        resp = await client.post("/auth/register", json=body)
        assert resp.status_code == 201, resp.text
        data = resp.json()
        return Account(data["user"], data["token"])

    return _register


@pytest.fixture
def customer(register):
    return lambda name="Customer": register(name=name, roles=("customer",))


@pytest.fixture
def merchant(register):
    return lambda name="Merchant", skill="Plumber": register(name=name, roles=("merchant",), skill=skill)


@pytest.fixture
def open_request(client):
    async def _open(account, service_type="Plumber", issue="leak", location="X"):
        resp = await client.post(
            "/service-requests/create",
            json={"serviceType": service_type, "issue": issue, "location": location},
            headers=account.headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _open


@pytest.fixture
def offer(client):
    async def _offer(account, request_id, price=500, negotiable=False):
        return await client.post(
            "/service-requests/accept",
            json={"requestId": request_id, "price": price, "negotiable": negotiable},
            headers=account.headers,
        )

    return _offer


@pytest.fixture
def active_booking(client, customer, merchant, open_request, offer):
    """Customer, merchant and the booking created by selecting the merchant's offer."""

    async def _make():
        c = await customer()
        m = await merchant()
        sr = await open_request(c)
        assert (await offer(m, sr["id"], price=300)).status_code == 200
        resp = await client.post(
            "/service-requests/select-merchant",
            json={"requestId": sr["id"], "merchantId": m.id},
            headers=c.headers,
        )
        assert resp.status_code == 200, resp.text
        return c, m, resp.json()

    return _make
