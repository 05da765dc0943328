"""Service Marketplace API client.

A thin wrapper around the marketplace REST API for scripts and
integrations.  It uses the ``requests`` library internally and exposes
one method per operation:

* :meth:`register_user` / :meth:`login` – accounts;
* :meth:`create_service`, :meth:`list_services`, :meth:`get_service`,
  :meth:`update_service`, :meth:`update_service_status` – listings;
* :meth:`create_request`, :meth:`list_requests`, :meth:`resolve_request`
  – negotiation;
* :meth:`pay`, :meth:`list_payments` – payments.

Every method returns a tuple ``(data, error)``.  On success ``error``
is ``None``; on failure ``data`` is ``None`` and ``error`` is a
dictionary with ``status_code``, ``message`` and, when the server sent
one, the error ``kind`` (``NotFound``, ``Conflict`` ...).

After a successful :meth:`login` the returned bearer token is sent in
the ``Authorization`` header of subsequent requests.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests


logger = logging.getLogger(__name__)

Result = Tuple[Optional[Any], Optional[Dict[str, Any]]]


class MarketplaceClient:
    """Client for the service marketplace API."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 15,
    ) -> None:
        """Initialise the API client.

        Args:
            base_url: Base URL for the API, e.g. ``http://localhost:3000``.
            api_key: Optional bearer token sent with every request.
            session: Optional requests session.  If not supplied a
                session will be created automatically.
            timeout: Per-request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Low level HTTP helper
    # ------------------------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Dict[str, Any] | None = None,
        json_body: Any | None = None,
        data: Dict[str, Any] | None = None,
        files: List[Tuple[str, Any]] | None = None,
    ) -> Result:
        """Perform an HTTP request and unpack the JSON response."""
        url = f"{self.base_url}{path}"
        headers: Dict[str, str] = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            logger.debug("Sending %s request to %s", method, url)
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json_body,
                data=data,
                files=files,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            if response.content:
                return response.json(), None
            return None, None
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            message, kind = str(exc), None
            if exc.response is not None:
                try:
                    body = exc.response.json()
                except ValueError:
                    message = exc.response.text or message
                else:
                    message = body.get("message") or body.get("detail") or str(body)
                    kind = body.get("error")
            logger.error("API request %s %s failed (%s): %s", method, path, status, message)
            return None, {"status_code": status, "message": message, "kind": kind}
        except requests.RequestException as exc:
            logger.error("API request %s %s failed: %s", method, path, exc)
            return None, {"status_code": None, "message": str(exc), "kind": None}

    @staticmethod
    def _image_files(field: str, paths: Iterable[str | Path]) -> List[Tuple[str, Any]]:
        files = []
        for path in paths:
            path = Path(path)
            mimetype = "image/jpeg" if path.suffix.lower() in {".jpg", ".jpeg"} else f"image/{path.suffix.lower().lstrip('.')}"
            files.append((field, (path.name, path.read_bytes(), mimetype)))
        return files

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def register_user(
        self,
        *,
        name: str,
        email: str,
        phone_number: str,
        address: Dict[str, str],
        password: str,
        photo: str | Path | None = None,
    ) -> Result:
        form = {
            "name": name,
            "email": email,
            "phoneNumber": phone_number,
            "address": json.dumps(address),
            "password": password,
        }
        files = self._image_files("photo", [photo]) if photo else None
        return self._request("POST", "/users/register", data=form, files=files)

    def login(self, email: str, password: str) -> Result:
        """Log in and remember the returned token for later requests."""
        data, error = self._request("POST", "/users/login", json_body={"email": email, "password": password})
        if data and data.get("access_token"):
            self.api_key = data["access_token"]
        return data, error

    # ------------------------------------------------------------------
    # Services
    # ------------------------------------------------------------------
    def create_service(
        self,
        *,
        name: str,
        description: str,
        value: float,
        location: Dict[str, str],
        service_type: str,
        creator: int,
        images: Iterable[str | Path] = (),
    ) -> Result:
        form = {
            "name": name,
            "description": description,
            "value": str(value),
            "location": json.dumps(location),
            "serviceType": service_type,
            "creator": str(creator),
        }
        files = self._image_files("images", images) or None
        return self._request("POST", "/services/create", data=form, files=files)

    def list_services(self, **filters: Any) -> Result:
        params = {key: value for key, value in filters.items() if value is not None}
        return self._request("GET", "/services", params=params or None)

    def get_service(self, service_id: int) -> Result:
        return self._request("GET", f"/services/{service_id}")

    def update_service(self, service_id: int, actor_id: int, **changes: Any) -> Result:
        body = {"actorId": actor_id, **changes}
        return self._request("PATCH", f"/services/{service_id}", json_body=body)

    def update_service_status(self, service_id: int, requested_status: str, actor_id: int) -> Result:
        body = {"requestedStatus": requested_status, "actorId": actor_id}
        return self._request("PATCH", f"/services/{service_id}/status", json_body=body)

    # ------------------------------------------------------------------
    # Negotiation
    # ------------------------------------------------------------------
    def create_request(self, service_id: int, proposer_id: int, proposed_value: float, proposed_date: str) -> Result:
        body = {
            "service": service_id,
            "proposer": proposer_id,
            "proposedValue": proposed_value,
            "proposedDate": proposed_date,
        }
        return self._request("POST", "/service-requests/request", json_body=body)

    def list_requests(self, service_id: int) -> Result:
        return self._request("GET", f"/service-requests/{service_id}")

    def resolve_request(self, request_id: int, decision: str, actor_id: int) -> Result:
        body = {"decision": decision, "actorId": actor_id}
        return self._request("POST", f"/service-requests/{request_id}/resolve", json_body=body)

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------
    def pay(
        self,
        *,
        service: int,
        customer: int,
        provider: int,
        amount: float,
        payment_method: Optional[str] = None,
        payment_provider_id: Optional[str] = None,
    ) -> Result:
        body = {
            "service": service,
            "customer": customer,
            "provider": provider,
            "amount": amount,
            "paymentMethod": payment_method,
            "paymentProviderId": payment_provider_id,
        }
        return self._request("POST", "/payments/pay", json_body=body)

    def list_payments(self, **filters: Any) -> Result:
        params = {key: value for key, value in filters.items() if value is not None}
        return self._request("GET", "/payments", params=params or None)
