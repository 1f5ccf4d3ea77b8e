"""HTTP implementation of the ERP delivery note contract."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

import requests
from django.conf import settings
from django.utils import timezone

from ..exceptions import (
    ErpClientError,
    ErpOrderReferenceError,
    ErpRejectionError,
    ErpTransportError,
)
from .erp_adapter import DeliveryNoteLine, ErpAdapterInterface

logger = logging.getLogger(__name__)

ERP_STATUS_MAP: dict[int, str] = {
    400: "validation_error",
    401: "authentication_error",
    403: "forbidden",
    404: "resource_not_found",
    409: "conflict_error",
    422: "validation_error",
    429: "rate_limited",
}

NOTE_ID_KEYS = ("id", "Id", "ID", "DocumentNumber", "note_id")


def map_status(status_code: int | None) -> str:
    if status_code is None:
        return "network_error"
    if status_code >= 500:
        return "server_error"
    return ERP_STATUS_MAP.get(status_code, "unknown_error")


def extract_error_message(body: Any) -> str:
    if isinstance(body, str):
        return body
    if isinstance(body, dict):
        for key in ("message", "Message", "error", "detail", "ErrorDesc"):
            if body.get(key):
                return str(body[key])
        return str(body)
    return str(body)


class ErpHttpClient:
    """Token-authenticated JSON client for the ERP REST API."""

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        *,
        branch_code: int = 0,
        timeout_s: int = 60,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url
        self.username = username
        self.password = password
        self.branch_code = branch_code
        self.timeout = timeout_s
        self.session = session or requests.Session()

        self.access_token: Optional[str] = None
        self.token_expires_at = None

    @classmethod
    def from_settings(cls, session: Optional[requests.Session] = None) -> "ErpHttpClient":
        return cls(
            base_url=settings.ERP_API_URL,
            username=settings.ERP_USERNAME,
            password=settings.ERP_PASSWORD,
            branch_code=settings.ERP_BRANCH_CODE,
            timeout_s=settings.ERP_TIMEOUT_SECONDS,
            session=session,
        )

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def authenticate(self) -> None:
        body = self._send(
            "POST",
            "auth/login",
            json={
                "BranchCode": self.branch_code,
                "Username": self.username,
                "Password": self.password,
            },
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )
        token = body.get("access_token")
        if not token:
            raise ErpRejectionError(
                "ERP login response carried no access token",
                error_code="authentication_error",
                payload=body,
            )
        try:
            expires_in = int(body.get("expires_in") or 3600)
        except (TypeError, ValueError) as exc:
            raise ErpRejectionError(
                f"ERP login response carried an invalid expires_in: {body.get('expires_in')!r}",
                error_code="authentication_error",
                payload=body,
            ) from exc
        self.access_token = token
        self.token_expires_at = timezone.now() + timedelta(seconds=expires_in)
        logger.info("Authenticated against ERP")

    def _ensure_authenticated(self) -> None:
        if not self.access_token or timezone.now() >= self.token_expires_at:
            self.authenticate()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------
    def request(self, method: str, path: str, *, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        self._ensure_authenticated()
        try:
            return self._send(method, path, json=json, headers=self._build_headers())
        except ErpRejectionError as exc:
            if exc.status_code != 401:
                raise
            # Token expired server-side; log in again and retry once.
            logger.info(f"ERP returned 401 for {method} {path}, re-authenticating")
            self.access_token = None
            self.authenticate()
            return self._send(method, path, json=json, headers=self._build_headers())

    def _send(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        url = self._build_url(path)
        try:
            response = self.session.request(
                method=method.upper(),
                url=url,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            logger.exception(f"ERP call {method} {path} timed out after {self.timeout}s")
            raise ErpTransportError(
                f"ERP did not answer within {self.timeout} seconds",
                error_code="timeout",
            ) from exc
        except requests.RequestException as exc:
            logger.exception(f"Network error calling ERP {method} {path}")
            raise ErpTransportError(
                f"Network error while calling the ERP: {exc}",
                error_code="network_error",
            ) from exc

        body, well_formed = self._parse_response_body(response)
        if response.ok:
            if not well_formed:
                raise ErpRejectionError(
                    f"ERP returned a malformed response to {method} {path}",
                    status_code=response.status_code,
                    error_code="malformed_response",
                    payload=body,
                )
            return body

        error_code = map_status(response.status_code)
        message = f"ERP responded {response.status_code}: {extract_error_message(body)}"
        error_class = ErpTransportError if response.status_code >= 500 else ErpRejectionError
        raise error_class(
            message,
            status_code=response.status_code,
            error_code=error_code,
            payload=body,
        )

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def _build_url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _parse_response_body(self, response: requests.Response) -> Tuple[Dict[str, Any], bool]:
        """Return the body as a dict and whether it was a JSON object."""
        if not response.content:
            return {}, True
        try:
            body = response.json()
        except ValueError:
            return {"raw": response.text}, False
        if isinstance(body, dict):
            return body, True
        return {"data": body}, False


class HttpErpAdapter(ErpAdapterInterface):
    """
    Delivery notes over the ERP REST API.

    Line-level creation looks the order up first, opens a note header and
    posts one line per picked item. Conversion asks the ERP to build the
    note from its own order.
    """

    def __init__(self, client: ErpHttpClient):
        self.client = client

    @classmethod
    def from_settings(cls) -> "HttpErpAdapter":
        return cls(ErpHttpClient.from_settings())

    def create_lines_under_note(self, order_ref: str, lines: List[DeliveryNoteLine]) -> str:
        erp_order = self._get_order(order_ref)

        header = self.client.request(
            "POST",
            "ItemSlips",
            json={
                "DocumentType": "DeliveryNote",
                "OrderReference": order_ref,
                "CustomerCode": erp_order.get("CustomerCode", ""),
            },
        )
        note_id = self._extract_note_id(header)

        for index, line in enumerate(lines, start=1):
            try:
                self.client.request(
                    "POST",
                    f"ItemSlips/{note_id}/Lines",
                    json={
                        "StockCode": line.stock_code,
                        "Quantity": line.quantity,
                        "UnitPrice": str(line.unit_price),
                        "Description": line.description,
                        "LineNumber": line.line_number or index,
                    },
                )
            except ErpClientError as exc:
                # The header exists on the ERP side; report it so it can be cleaned up.
                exc.payload = {**exc.payload, "note_id": note_id, "lines_created": index - 1}
                raise

        logger.info(f"Created ERP delivery note {note_id} for {order_ref} with {len(lines)} lines")
        return note_id

    def convert_order_to_note(self, order_ref: str) -> str:
        body = self.client.request("POST", "ItemSlips/FromOrder", json={"OrderReference": order_ref})
        note_id = self._extract_note_id(body)
        logger.info(f"ERP converted order {order_ref} into delivery note {note_id}")
        return note_id

    def _get_order(self, order_ref: str) -> Dict[str, Any]:
        try:
            return self.client.request("GET", f"Orders/{order_ref}")
        except ErpRejectionError as exc:
            if exc.status_code == 404:
                raise ErpOrderReferenceError(
                    f"Order {order_ref} not found in ERP",
                    status_code=404,
                    error_code="order_not_found",
                    payload=exc.payload,
                ) from exc
            raise

    @staticmethod
    def _extract_note_id(body: Dict[str, Any]) -> str:
        for key in NOTE_ID_KEYS:
            if body.get(key) not in (None, ""):
                return str(body[key])
        raise ErpRejectionError(
            "ERP response carried no delivery note id",
            error_code="missing_note_id",
            payload=body,
        )
