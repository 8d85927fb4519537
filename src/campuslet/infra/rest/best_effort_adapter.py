"""Best-effort persistence adapter over a PostgREST-style HTTP API.

Implements ``PersistenceAdapterPort`` for hosted stores that expose tables
as REST resources (``GET/POST/PATCH/DELETE /{table}?column=eq.value``) and
offer no multi-request transaction. A deletion plan is issued one step at a
time; if step k fails after steps 1..k-1 succeeded, the result is
PARTIAL_FAILURE naming the completed prefix. Deleting an absent row counts
as success, so a partially applied plan can simply be executed again.

Reads that return many rows page with ``limit``/``offset`` until a short page
comes back, so a server-side row cap (PostgREST ``db-max-rows``) never
truncates a plan. ``page_size`` must not exceed that cap.

Retry policy:
- GET and DELETE are idempotent: retried up to ``max_retries`` times on
  transport errors and 502/503/504, with linear backoff
- POST and PATCH are never retried
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

import httpx

from campuslet.foundation.domain.exceptions import (
    ConcurrentModificationError,
    ConflictError,
    DomainError,
    StoreError,
    TransportError,
)
from campuslet.foundation.domain.referential import (
    DeletionPlan,
    ExecutionResult,
    RowRef,
    verify_unreferenced,
)

if TYPE_CHECKING:
    from campuslet.infra.rest.settings import RestStoreSettings

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 10.0
_DEFAULT_PAGE_SIZE = 1000
_IDEMPOTENT_METHODS = frozenset({"GET", "DELETE"})
_RETRYABLE_STATUS = frozenset({502, 503, 504})
# PostgreSQL SQLSTATE codes surfaced by PostgREST
_FOREIGN_KEY_VIOLATION = "23503"
_UNIQUE_VIOLATION = "23505"


class RestBestEffortAdapter:
    """Sequential, non-atomic persistence adapter.

    Supports both shared and owned ``httpx.Client`` modes:
    - If ``client`` is provided, it is reused (caller manages lifecycle).
    - If omitted, an internal client is created lazily on first use.
      Call :meth:`close` to release it.

    Args:
        base_url: PostgREST base URL (e.g. "https://xyz.supabase.co/rest/v1").
        api_key: Service key, sent as ``apikey`` and as bearer token.
        timeout: Per-request timeout in seconds.
        max_retries: Retries for idempotent requests.
        retry_backoff: Base backoff in seconds; attempt n waits n * backoff.
        page_size: Rows per read request; at most the server row cap.
        client: Optional shared httpx.Client instance.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = _DEFAULT_TIMEOUT,
        max_retries: int = 2,
        retry_backoff: float = 0.2,
        client: httpx.Client | None = None,
        page_size: int = _DEFAULT_PAGE_SIZE,
    ) -> None:
        if page_size < 1:
            msg = f"page_size must be positive, got {page_size}"
            raise ValueError(msg)
        self._base_url = base_url.rstrip("/")
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }
        self._timeout = timeout
        self._max_retries = max_retries
        self._retry_backoff = retry_backoff
        self._page_size = page_size
        self._external_client = client is not None
        self._client: httpx.Client | None = client

    @classmethod
    def from_settings(
        cls,
        settings: RestStoreSettings,
        client: httpx.Client | None = None,
    ) -> RestBestEffortAdapter:
        return cls(
            base_url=settings.base_url,
            api_key=settings.api_key,
            timeout=settings.timeout,
            max_retries=settings.max_retries,
            retry_backoff=settings.retry_backoff,
            client=client,
            page_size=settings.page_size,
        )

    # -- reads -------------------------------------------------------------

    def find_keys(
        self,
        table: str,
        column: str,
        value: Any,
        key_columns: tuple[str, ...],
    ) -> list[tuple[int, ...]]:
        params = {
            "select": ",".join(key_columns),
            column: _eq(value),
            "order": ",".join(f"{name}.asc" for name in key_columns),
        }
        rows = self._read_all(table, params)
        return [tuple(int(row[name]) for name in key_columns) for row in rows]

    def select_rows(
        self,
        table: str,
        where: dict[str, Any] | None = None,
        order_by: tuple[str, ...] = (),
    ) -> list[dict[str, Any]]:
        params = {"select": "*"}
        params.update((column, _eq(value)) for column, value in (where or {}).items())
        if order_by:
            params["order"] = ",".join(
                f"{name[1:]}.desc" if name.startswith("-") else f"{name}.asc" for name in order_by
            )
        return self._read_all(table, params)

    def count(self, table: str, column: str, value: Any) -> int:
        response = self._request(
            "GET",
            table,
            params={"select": column, column: _eq(value), "limit": "1"},
            headers={"Prefer": "count=exact"},
        )
        total = response.headers.get("Content-Range", "").rpartition("/")[2]
        if total.isdigit():
            return int(total)
        return len(self._json(response))

    def fetch(self, table: str, key: dict[str, int]) -> dict[str, Any] | None:
        params = {"select": "*", **_filters(key), "limit": "1"}
        rows = self._json(self._request("GET", table, params=params))
        return dict(rows[0]) if rows else None

    # -- writes ------------------------------------------------------------

    def insert(
        self,
        table: str,
        values: dict[str, Any],
        returning: str | None = None,
    ) -> int | None:
        prefer = "return=representation" if returning else "return=minimal"
        response = self._request(
            "POST", table, json=_jsonable(values), headers={"Prefer": prefer}
        )
        if returning is None:
            return None
        rows = self._json(response)
        if not rows or returning not in rows[0]:
            raise StoreError(f"Insert into '{table}' returned no {returning}", table=table)
        return int(rows[0][returning])

    def insert_many(self, table: str, rows: list[dict[str, Any]]) -> None:
        """Bulk insert; PostgREST applies one request as one statement."""
        if not rows:
            return
        self._request(
            "POST",
            table,
            json=[_jsonable(values) for values in rows],
            headers={"Prefer": "return=minimal"},
        )

    def update(self, table: str, key: dict[str, int], values: dict[str, Any]) -> bool:
        response = self._request(
            "PATCH",
            table,
            params=_filters(key),
            json=_jsonable(values),
            headers={"Prefer": "return=representation"},
        )
        return bool(self._json(response))

    def delete_row(self, table: str, key: dict[str, int]) -> bool:
        response = self._request(
            "DELETE",
            table,
            params=_filters(key),
            headers={"Prefer": "return=representation"},
        )
        return bool(self._json(response))

    # -- plan execution ----------------------------------------------------

    def execute(self, plan: DeletionPlan) -> ExecutionResult:
        """Issue the plan's steps in order, stopping at the first failure.

        Returns:
            SUCCEEDED, FAILED (first step failed, nothing deleted) or
            PARTIAL_FAILURE (completed prefix, failed step and cause).
        """
        completed: list[RowRef] = []
        for step in plan:
            try:
                verify_unreferenced(step, self.count)
                self.delete_row(step.table, step.key)
            except DomainError as exc:
                result = ExecutionResult.failed(step.ref, exc, completed)
                log = logger.error if completed else logger.warning
                log(
                    "deletion_plan_stopped",
                    extra={
                        "root": str(plan.root),
                        "status": result.status.value,
                        "completed": [str(ref) for ref in completed],
                        "failed_step": str(step.ref),
                        "error_code": exc.error_code,
                        "cause": str(exc),
                    },
                )
                return result
            completed.append(step.ref)

        if completed:
            logger.info(
                "deletion_plan_applied",
                extra={"root": str(plan.root), "steps": len(completed)},
            )
        return ExecutionResult.succeeded(completed)

    # -- transport ---------------------------------------------------------

    def ping(self) -> None:
        """Issue a one-row read; raises TransportError/StoreError when unhealthy."""
        self._request("GET", "users", params={"select": "user_id", "limit": "1"})

    def close(self) -> None:
        """Close the internal httpx.Client if we own it.

        No-op if the client was provided externally or not yet created.
        """
        if self._client is not None and not self._external_client:
            self._client.close()
            self._client = None

    def _get_client(self) -> httpx.Client:
        """Return the shared or lazily-created httpx.Client."""
        if self._client is None:
            self._client = httpx.Client()
        return self._client

    def _request(
        self,
        method: str,
        table: str,
        params: dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send one request, retrying idempotent methods on transport failure.

        Raises:
            TransportError: Store unreachable, timed out or 502/503/504.
            ConflictError: Duplicate key or missing referenced row.
            ConcurrentModificationError: Delete rejected by a foreign key.
            StoreError: Any other rejection.
        """
        attempts = 1 + (self._max_retries if method in _IDEMPOTENT_METHODS else 0)
        url = f"{self._base_url}/{table}"
        attempt = 0
        while True:
            attempt += 1
            try:
                response = self._get_client().request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers={**self._headers, **(headers or {})},
                    timeout=self._timeout,
                )
            except httpx.TransportError as exc:
                if attempt < attempts:
                    self._backoff(method, table, attempt, type(exc).__name__)
                    continue
                raise TransportError(
                    f"{method} {table} failed: {type(exc).__name__}",
                    table=table,
                    method=method,
                    attempts=attempt,
                ) from exc

            if response.status_code in _RETRYABLE_STATUS and attempt < attempts:
                self._backoff(method, table, attempt, str(response.status_code))
                continue
            return _raise_for_status(response, method, table)

    def _backoff(self, method: str, table: str, attempt: int, reason: str) -> None:
        logger.warning(
            "rest_store_retry",
            extra={"method": method, "table": table, "attempt": attempt, "reason": reason},
        )
        time.sleep(self._retry_backoff * attempt)

    def _read_all(self, table: str, params: dict[str, str]) -> list[dict[str, Any]]:
        """GET every matching row, one ``page_size`` page at a time."""
        rows: list[dict[str, Any]] = []
        while True:
            page = self._json(
                self._request(
                    "GET",
                    table,
                    params={**params, "limit": str(self._page_size), "offset": str(len(rows))},
                )
            )
            rows.extend(page)
            if len(page) < self._page_size:
                return rows

    @staticmethod
    def _json(response: httpx.Response) -> list[dict[str, Any]]:
        if not response.content:
            return []
        try:
            body = response.json()
        except ValueError as exc:
            raise StoreError("Store returned invalid JSON", status=response.status_code) from exc
        if isinstance(body, dict):
            return [body]
        return list(body)


def _raise_for_status(response: httpx.Response, method: str, table: str) -> httpx.Response:
    """Translate an HTTP error response into the domain error taxonomy."""
    if response.is_success:
        return response

    status = response.status_code
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    code = str(body.get("code", ""))
    detail = str(body.get("message") or response.reason_phrase)
    context = {"table": table, "method": method, "status": status}

    if code == _FOREIGN_KEY_VIOLATION:
        if method == "DELETE":
            raise ConcurrentModificationError(
                f"Delete from '{table}' rejected: row is still referenced", detail=detail, **context
            )
        raise ConflictError(f"Referenced row missing for '{table}'", detail=detail, **context)
    if code == _UNIQUE_VIOLATION or status == 409:
        raise ConflictError(f"Duplicate row in '{table}'", detail=detail, **context)
    if status in _RETRYABLE_STATUS or status == 408:
        raise TransportError(f"{method} {table} failed with {status}", detail=detail, **context)
    raise StoreError(f"{method} {table} rejected with {status}", detail=detail, **context)


def _eq(value: Any) -> str:
    if isinstance(value, bool):
        return "eq.true" if value else "eq.false"
    return f"eq.{value}"


def _filters(key: dict[str, int]) -> dict[str, str]:
    if not key:
        msg = "Empty key"
        raise StoreError(msg)
    return {column: _eq(value) for column, value in key.items()}


def _jsonable(values: dict[str, Any]) -> dict[str, Any]:
    """Render dates and decimals as strings for the JSON body."""
    return {
        name: value if value is None or isinstance(value, (bool, int, float, str)) else str(value)
        for name, value in values.items()
    }
