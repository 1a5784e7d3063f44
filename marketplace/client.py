"""Async HTTP client for the marketplace API.

Used by front ends and scripts. Every call goes through `_request`, which
attaches the bearer token and turns error responses into `ApiError`. A 401 on
any call clears the session and fires `on_session_expired`.
"""

import asyncio
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

import httpx

DEFAULT_TIMEOUT = 10.0
MESSAGE_POLL_SECONDS = 3.0


class ApiError(Exception):
    def __init__(self, status_code: int, detail: str, code: Optional[str] = None):
        self.status_code = status_code
        self.detail = detail
        self.code = code
        super().__init__(f"{status_code}: {detail}")


SessionExpiredHook = Callable[[], Optional[Awaitable[None]]]


class MarketplaceClient:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        on_session_expired: Optional[SessionExpiredHook] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.token = token
        self.user: Optional[dict] = None
        self.on_session_expired = on_session_expired
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        await self._http.aclose()

    @property
    def authenticated(self) -> bool:
        return self.token is not None

    async def _expire_session(self):
        self.token = None
        self.user = None
        if self.on_session_expired is not None:
            result = self.on_session_expired()
            if asyncio.iscoroutine(result):
                await result

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        resp = await self._http.request(method, path, json=json, headers=headers)

        if resp.status_code == 401:
            await self._expire_session()

        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            detail = body.get("detail") if isinstance(body, dict) else None
            code = body.get("code") if isinstance(body, dict) else None
            raise ApiError(resp.status_code, str(detail or resp.text), code)

        if resp.content:
            return resp.json()
        return None

    # -------- AUTH --------

    async def register(self, name: str, email: str, password: str, roles: list[str], phone: str | None = None, merchant_data: dict | None = None) -> dict:
        body = {"name": name, "email": email, "password": password, "roles": roles, "phone": phone}
        if merchant_data is not None:
            body["merchantData"] = merchant_data
        data = await self._request("POST", "/auth/register", body)
        self.token = data["token"]
        self.user = data["user"]
        return data

    async def login(self, email: str, password: str) -> dict:
        data = await self._request("POST", "/auth/login", {"email": email, "password": password})
        self.token = data["token"]
        self.user = data["user"]
        return data

    async def logout(self):
        self.token = None
        self.user = None

    async def me(self) -> dict:
        return await self._request("GET", "/auth/me")

    async def add_role(self, role: str) -> dict:
        data = await self._request("POST", "/auth/add-role", {"role": role})
        self.user = data["user"]
        return data

    # -------- SERVICE REQUESTS --------

    async def create_service_request(self, service_type: str, issue: str, location: str) -> dict:
        return await self._request(
            "POST",
            "/service-requests/create",
            {"serviceType": service_type, "issue": issue, "location": location},
        )

    async def available_requests(self) -> list[dict]:
        return await self._request("GET", "/service-requests/available")

    async def submit_offer(self, request_id: str, price: float, negotiable: bool = False) -> dict:
        return await self._request(
            "POST",
            "/service-requests/accept",
            {"requestId": request_id, "price": price, "negotiable": negotiable},
        )

    async def select_merchant(self, request_id: str, merchant_id: str) -> dict:
        return await self._request(
            "POST",
            "/service-requests/select-merchant",
            {"requestId": request_id, "merchantId": merchant_id},
        )

    async def customer_requests(self, customer_id: str) -> list[dict]:
        return await self._request("GET", f"/service-requests/customer/{customer_id}")

    async def get_service_request(self, request_id: str) -> dict:
        return await self._request("GET", f"/service-requests/{request_id}")

    # -------- BOOKINGS --------

    async def customer_bookings(self, user_id: str) -> list[dict]:
        return await self._request("GET", f"/bookings/user/{user_id}")

    async def merchant_bookings(self, merchant_id: str) -> list[dict]:
        return await self._request("GET", f"/bookings/merchant/{merchant_id}")

    async def get_booking(self, booking_id: str) -> dict:
        return await self._request("GET", f"/bookings/{booking_id}")

    async def create_booking(
        self,
        merchant_id: str,
        service_type: str,
        price: float,
        address: str | None = None,
        notes: str | None = None,
    ) -> dict:
        return await self._request(
            "POST",
            "/bookings/create",
            {
                "merchantId": merchant_id,
                "serviceType": service_type,
                "price": price,
                "address": address,
                "notes": notes,
            },
        )

    async def update_booking_status(self, booking_id: str, status: str) -> dict:
        return await self._request("PATCH", "/bookings/status", {"bookingId": booking_id, "status": status})

    # -------- CHAT --------

    async def send_message(self, booking_id: str, message: str) -> dict:
        return await self._request("POST", "/chat/send", {"bookingId": booking_id, "message": message})

    async def messages(self, booking_id: str) -> list[dict]:
        return await self._request("GET", f"/chat/booking/{booking_id}")

    async def unread_count(self) -> int:
        data = await self._request("GET", "/chat/unread-count")
        return data["unreadCount"]

    async def latest_unread(self) -> dict:
        return await self._request("GET", "/chat/latest-unread")

    async def poll_messages(
        self,
        booking_id: str,
        interval: float = MESSAGE_POLL_SECONDS,
        stop: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[dict]:
        """Yield messages of a booking as they appear, re-fetching every `interval` seconds.

        Stops when `stop` is set or the session expires.
        """
        seen: set[int] = set()
        while self.authenticated and not (stop and stop.is_set()):
            try:
                batch = await self.messages(booking_id)
            except ApiError as e:
                if e.status_code == 401:
                    return
                raise

            for msg in batch:
                if msg["id"] not in seen:
                    seen.add(msg["id"])
                    yield msg

            if stop is None:
                await asyncio.sleep(interval)
                continue
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    # -------- MERCHANTS / CATALOG --------

    async def merchants(self) -> list[dict]:
        return await self._request("GET", "/merchants")

    async def update_merchant_profile(self, **fields) -> dict:
        return await self._request("POST", "/merchants/update", fields)

    async def update_portfolio(self, profile_picture: str | None = None, previous_work_images: list[str] | None = None) -> dict:
        body = {}
        if profile_picture is not None:
            body["profilePicture"] = profile_picture
        if previous_work_images is not None:
            body["previousWorkImages"] = previous_work_images
        return await self._request("POST", "/merchants/portfolio", body)

    async def services(self) -> list[dict]:
        return await self._request("GET", "/services")
