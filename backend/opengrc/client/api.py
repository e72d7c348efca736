"""
Async REST client for the OpenGRC API.

Credentials are an explicit value object handed to the client at
construction; nothing is read from ambient storage per request.
Non-2xx responses become ApiError(body text, status); transport failures
become ApiError with status 0. No retries and no de-duplication.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx
from pydantic import TypeAdapter, ValidationError

from opengrc.client.config import client_settings, sso_base

log = logging.getLogger(__name__)

NETWORK_ERROR = "Network error. Please check your connection."
INVALID_RESPONSE = "Invalid response from server"


class ApiError(Exception):
    """Failed API call. ``status`` is 0 when no usable response arrived."""

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.message = message
        self.status = status

    @property
    def detail(self) -> str:
        """FastAPI's ``detail`` field when the body carries one, else the raw message."""
        try:
            body = json.loads(self.message)
        except ValueError:
            return self.message
        if isinstance(body, dict) and isinstance(body.get("detail"), str):
            return body["detail"]
        return self.message

    def __repr__(self) -> str:
        return f"ApiError(status={self.status}, message={self.message!r})"


# ═══════════════════ CREDENTIALS ═══════════════════

@dataclass(frozen=True)
class Credentials:
    token: str | None = None
    user: dict[str, Any] | None = field(default=None, compare=False)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)


class CredentialStore:
    """JSON file holding ``auth_token`` / ``auth_user``."""

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path or client_settings.CREDENTIALS_FILE)

    def load(self) -> Credentials:
        if not self.path.exists():
            return Credentials()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log.warning("Ignoring unreadable credentials file %s: %s", self.path, exc)
            return Credentials()
        if not isinstance(raw, dict):
            return Credentials()
        return Credentials(token=raw.get("auth_token"), user=raw.get("auth_user"))

    def save(self, credentials: Credentials) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"auth_token": credentials.token, "auth_user": credentials.user}
        self.path.write_text(json.dumps(payload), encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


# ═══════════════════ HELPERS ═══════════════════

def clean_params(params: dict[str, Any] | None) -> dict[str, Any] | None:
    """Drop None and empty-string values; booleans go out as true/false."""
    if not params:
        return None
    out: dict[str, Any] = {}
    for key, value in params.items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        out[key] = value
    return out or None


def _decode(resp: httpx.Response) -> Any:
    if not resp.content:
        return {}
    if "application/json" not in resp.headers.get("content-type", ""):
        return {}
    try:
        return resp.json()
    except ValueError:
        return {}


def _validate(model: Any, data: Any) -> Any:
    try:
        return TypeAdapter(model).validate_python(data)
    except ValidationError as exc:
        log.warning("Response did not match %s: %s", getattr(model, "__name__", model), exc)
        raise ApiError(INVALID_RESPONSE, 0) from exc


# ═══════════════════ CLIENT ═══════════════════

class ApiClient:
    def __init__(
        self,
        base_url: str | None = None,
        credentials: Credentials | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or client_settings.API_URL).rstrip("/")
        self.sso_base_url = sso_base(self.base_url)
        self.credentials = credentials or Credentials()
        self._http = httpx.AsyncClient(
            transport=transport,
            timeout=timeout if timeout is not None else client_settings.TIMEOUT,
        )

    @classmethod
    def from_store(cls, store: CredentialStore, **kwargs: Any) -> ApiClient:
        return cls(credentials=store.load(), **kwargs)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _headers(self, token: str | None = None) -> dict[str, str]:
        token = token or self.credentials.token
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def _send(self, method: str, url: str, label: str, **kwargs: Any) -> httpx.Response:
        log.debug("%s %s", method, label)
        try:
            resp = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            log.warning("%s %s failed: %s", method, label, exc)
            raise ApiError(NETWORK_ERROR, 0) from exc
        if not resp.is_success:
            message = resp.text or resp.reason_phrase or "An error occurred"
            log.warning("%s %s -> %d", method, label, resp.status_code)
            raise ApiError(message, resp.status_code)
        return resp

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        params: dict[str, Any] | None = None,
        model: Any = None,
    ) -> Any:
        kwargs: dict[str, Any] = {"headers": self._headers(), "params": clean_params(params)}
        if body is not None:
            kwargs["json"] = body
        resp = await self._send(method, f"{self.base_url}{path}", path, **kwargs)
        data = _decode(resp)
        return _validate(model, data) if model is not None else data

    async def get(self, path: str, *, params: dict[str, Any] | None = None, model: Any = None) -> Any:
        return await self.request("GET", path, params=params, model=model)

    async def post(self, path: str, body: Any = None, *, params: dict[str, Any] | None = None,
                   model: Any = None) -> Any:
        return await self.request("POST", path, body, params=params, model=model)

    async def put(self, path: str, body: Any = None, *, model: Any = None) -> Any:
        return await self.request("PUT", path, body, model=model)

    async def patch(self, path: str, body: Any = None, *, model: Any = None) -> Any:
        return await self.request("PATCH", path, body, model=model)

    async def delete(self, path: str, body: Any = None, *, model: Any = None) -> Any:
        return await self.request("DELETE", path, body, model=model)

    async def upload(self, path: str, filename: str, content: bytes,
                     content_type: str = "application/octet-stream", *, model: Any = None) -> Any:
        """POST a single file as multipart form data under the ``file`` field."""
        resp = await self._send(
            "POST", f"{self.base_url}{path}", path,
            headers=self._headers(),
            files={"file": (filename, content, content_type)},
        )
        data = _decode(resp)
        return _validate(model, data) if model is not None else data

    # ── SSO (served beside the API, outside /api/v1) ──

    async def exchange_sso_code(self, code: str) -> dict[str, Any]:
        resp = await self._send(
            "POST", f"{self.sso_base_url}/api/sso/exchange", "/api/sso/exchange",
            json={"code": code},
        )
        return _decode(resp)

    async def get_sso_user_info(self, token: str) -> dict[str, Any]:
        resp = await self._send(
            "POST", f"{self.sso_base_url}/api/sso/userinfo", "/api/sso/userinfo",
            headers=self._headers(token),
        )
        return _decode(resp)

    async def login_with_sso(self, code: str, store: CredentialStore | None = None) -> Credentials:
        """Exchange the code, fetch user info and switch this client to the new token."""
        tokens = await self.exchange_sso_code(code)
        token = tokens.get("access_token")
        if not token:
            raise ApiError(INVALID_RESPONSE, 0)
        user = await self.get_sso_user_info(token)
        self.credentials = Credentials(token=token, user=user or None)
        if store is not None:
            store.save(self.credentials)
        return self.credentials

    def logout(self, store: CredentialStore | None = None) -> None:
        self.credentials = Credentials()
        if store is not None:
            store.clear()
