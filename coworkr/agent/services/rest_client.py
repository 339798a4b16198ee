from __future__ import annotations

import time
from typing import Any

import requests

from coworkr.agent.services.errors import RecordNotFound, RecordStoreError
from coworkr.config.settings import get_app_url, get_store_timeout_seconds

CALLER_HEADER = "x-coworkr-user-id"


class CoworkrRestClient:
    """Thin JSON client for the Coworkr `/api/*` routes.

    Every request carries the acting caller in `x-coworkr-user-id`; the
    record is read and written in that caller's scope.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        max_attempts: int = 2,
        base_delay_sec: float = 0.25,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = (base_url or get_app_url()).rstrip("/")
        self._timeout = timeout if timeout is not None else get_store_timeout_seconds()
        self._max_attempts = max(1, max_attempts)
        self._base_delay_sec = base_delay_sec
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})

    def get(self, caller_id: str, path: str, *, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return self._request("GET", path, caller_id=caller_id, params=params)

    def post(self, caller_id: str, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", path, caller_id=caller_id, json=payload)

    def put(self, caller_id: str, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("PUT", path, caller_id=caller_id, json=payload)

    def delete(self, caller_id: str, path: str, *, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return self._request("DELETE", path, caller_id=caller_id, params=params)

    def _request(
        self,
        method: str,
        path: str,
        *,
        caller_id: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        last_error: Exception | None = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                response = self._session.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers={CALLER_HEADER: caller_id},
                    timeout=self._timeout,
                )
                if response.status_code == 404:
                    raise RecordNotFound(f"{method} {path} not found")
                if 500 <= response.status_code < 600 and attempt < self._max_attempts:
                    self._sleep_before_retry(attempt)
                    continue
                if response.status_code >= 400:
                    raise RecordStoreError(
                        f"{method} {path} failed status={response.status_code} body={response.text[:200]}"
                    )
                body = response.json() if response.content else {}
                return body if isinstance(body, dict) else {"items": body}
            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = exc
                if attempt >= self._max_attempts:
                    break
                self._sleep_before_retry(attempt)
            except ValueError as exc:
                raise RecordStoreError(f"{method} {path} returned invalid JSON") from exc
        raise RecordStoreError(f"{method} {path} failed: {last_error}")

    def _sleep_before_retry(self, attempt: int) -> None:
        time.sleep(self._base_delay_sec * (2 ** max(0, attempt - 1)))
