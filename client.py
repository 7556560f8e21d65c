"""
HTTP client for the Healthcare Waste Management API.

Each WasteClient owns its session: the bearer token and the signed-in user
live on the instance, never in module state, so several users can be driven
from one process. The disposal queue is cached for a short window to avoid
re-fetching on every dashboard refresh; any mutation through the same client
invalidates it.
"""
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx

DEFAULT_BASE_URL = "http://localhost:5000"
STATUSES = ("pending", "processing", "completed")


class ApiError(Exception):
    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


class WasteClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: Optional[str] = None,
        http: Optional[httpx.Client] = None,
        cache_seconds: float = 10.0,
        timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._http = http or httpx.Client(base_url=base_url, timeout=timeout)
        self.token = token
        self.user: Optional[Dict[str, Any]] = None
        self.cache_seconds = cache_seconds
        self._clock = clock
        self._pending_cache: Optional[List[Dict[str, Any]]] = None
        self._pending_fetched_at = 0.0

    # ------------------ plumbing ------------------
    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def _request(self, method: str, path: str, **kwargs) -> Any:
        response = self._http.request(method, path, headers=self._headers(), **kwargs)
        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and body.get("message"):
                message = body["message"]
            else:
                message = response.text or response.reason_phrase
            raise ApiError(response.status_code, message)
        return response.json()

    def invalidate(self) -> None:
        self._pending_cache = None
        self._pending_fetched_at = 0.0

    # ------------------ auth ------------------
    def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        user_type: str,
        department: Optional[str] = None,
    ) -> Dict[str, Any]:
        data = self._request(
            "POST",
            "/api/auth/register",
            json={
                "email": email,
                "password": password,
                "firstName": first_name,
                "lastName": last_name,
                "userType": user_type,
                "department": department,
            },
        )
        self._start_session(data)
        return data["user"]

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/api/auth/login", json={"email": email, "password": password})
        self._start_session(data)
        return data["user"]

    def logout(self) -> None:
        self.token = None
        self.user = None
        self.invalidate()

    def profile(self) -> Dict[str, Any]:
        self.user = self._request("GET", "/api/auth/profile")
        return self.user

    def _start_session(self, data: Dict[str, Any]) -> None:
        self.token = data["token"]
        self.user = data["user"]
        self.invalidate()

    # ------------------ waste requests ------------------
    def create_request(
        self,
        waste_type: str,
        quantity: float,
        unit: str,
        urgency: str,
        department: Optional[str] = None,
        instructions: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload = {
            "wasteType": waste_type,
            "quantity": quantity,
            "unit": unit,
            "urgency": urgency,
            "department": department,
            "instructions": instructions,
        }
        created = self._request("POST", "/api/requests/create", json=payload)
        self.invalidate()
        return created

    def my_requests(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/requests/my-requests")

    def pending_requests(self, force_refresh: bool = False) -> List[Dict[str, Any]]:
        now = self._clock()
        fresh = self._pending_cache is not None and now - self._pending_fetched_at < self.cache_seconds
        if fresh and not force_refresh:
            return self._pending_cache
        self._pending_cache = self._request("GET", "/api/requests/pending")
        self._pending_fetched_at = now
        return self._pending_cache

    def get_request(self, request_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/requests/{request_id}")

    def assign(self, request_id: str) -> Dict[str, Any]:
        updated = self._request("PUT", f"/api/requests/{request_id}/assign")
        self.invalidate()
        return updated

    def complete(self, request_id: str, disposal_method: str, disposal_location: str) -> Dict[str, Any]:
        updated = self._request(
            "PUT",
            f"/api/requests/{request_id}/complete",
            json={"disposalMethod": disposal_method, "disposalLocation": disposal_location},
        )
        self.invalidate()
        return updated

    # ------------------ classification ------------------
    def classify(self, image: bytes, filename: str, content_type: str = "application/octet-stream") -> Dict[str, Any]:
        return self._request("POST", "/api/classify", files={"image": (filename, image, content_type)})

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "WasteClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def summarize(requests: Iterable[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """Group requests by status, in lifecycle order, for dashboard tiles."""
    groups: Dict[str, List[Dict[str, Any]]] = OrderedDict((s, []) for s in STATUSES)
    for req in requests:
        groups.setdefault(req.get("status", "pending"), []).append(req)
    return groups
