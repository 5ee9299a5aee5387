"""HTTP delivery of batch payloads to the ingest service."""

from __future__ import annotations

import requests

from .errors import TransportError
from .logging import jlog
from .payload import BatchPayload
from .urls import batch_endpoint

DEFAULT_TIMEOUT_S = 30.0
DEFAULT_USER_AGENT = "adharvest/1.0"


def _make_http(user_agent: str, token: str | None) -> requests.Session:
    s = requests.Session()
    s.headers.update({"User-Agent": user_agent, "Content-Type": "application/json"})
    if token:
        s.headers["Authorization"] = f"Bearer {token}"
    return s


def send_batch(
    api_base: str,
    payload: BatchPayload,
    *,
    token: str | None = None,
    timeout_s: float = DEFAULT_TIMEOUT_S,
    session: requests.Session | None = None,
) -> int:
    """POST ``payload`` to ``<api_base>/api/ads/batch`` and return the processed count."""

    endpoint = batch_endpoint(api_base)
    http = session or _make_http(DEFAULT_USER_AGENT, token)
    jlog("info", event="batch_upload", endpoint=endpoint, ads=len(payload.ads))
    try:
        resp = http.post(endpoint, json=payload.to_wire(), timeout=timeout_s)
    except requests.RequestException as exc:
        jlog("error", event="batch_upload_failed", endpoint=endpoint, error=str(exc))
        raise TransportError(f"POST {endpoint} failed: {exc}") from exc

    if not resp.ok:
        jlog("error", event="batch_upload_rejected", endpoint=endpoint, status=resp.status_code, body=resp.text[:500])
        raise TransportError(
            f"Ingest service responded with {resp.status_code}",
            status=resp.status_code,
            body=resp.text,
        )

    try:
        processed = int(resp.json().get("processedAds"))
    except (ValueError, TypeError, AttributeError):
        processed = len(payload.ads)
    jlog("info", event="batch_uploaded", endpoint=endpoint, processed_ads=processed)
    return processed


__all__ = ["send_batch"]
