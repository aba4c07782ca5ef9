"""
HTTP client for the hosted backend's REST (PostgREST) and RPC endpoints
"""
import httpx
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

from ..config import settings
from ..exceptions import (
    BackendError,
    BackendTimeoutError,
    ConflictError,
    GalleryError,
    NotFoundError,
    NotOwnerError,
)

logger = logging.getLogger(__name__)

REST_PREFIX = "/rest/v1"

# PostgREST / Postgres error codes the client reacts to
NO_ROWS_CODE = "PGRST116"
UNIQUE_VIOLATION_CODE = "23505"
INSUFFICIENT_PRIVILEGE_CODE = "42501"


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def first_row(rows: List[Dict[str, Any]], what: str) -> Dict[str, Any]:
    """First returned row; an empty result from a write is a malformed response"""
    if not rows:
        raise BackendError(details=f"Malformed response: no {what} row returned")
    return rows[0]


def row_value(row: Dict[str, Any], column: str) -> Any:
    """Required column of a returned row"""
    if column not in row:
        raise BackendError(details=f"Malformed response: missing {column}")
    return row[column]


def _quote(value: Any) -> str:
    """Quote a list member when it contains PostgREST reserved characters"""
    text = _format_value(value)
    if any(ch in text for ch in ',()"'):
        escaped = text.replace('"', '\\"')
        return f'"{escaped}"'
    return text


class Query:
    """Filter builder for one table, rendered to PostgREST query parameters"""

    def __init__(self, table: str, select: str = "*"):
        self.table = table
        self.columns = " ".join(select.split())
        self._filters: List[Tuple[str, str]] = []
        self._order: List[str] = []
        self._offset: Optional[int] = None
        self._limit: Optional[int] = None

    def eq(self, column: str, value: Any) -> "Query":
        self._filters.append((column, f"eq.{_format_value(value)}"))
        return self

    def neq(self, column: str, value: Any) -> "Query":
        self._filters.append((column, f"neq.{_format_value(value)}"))
        return self

    def gte(self, column: str, value: Any) -> "Query":
        self._filters.append((column, f"gte.{_format_value(value)}"))
        return self

    def in_(self, column: str, values: Iterable[Any]) -> "Query":
        members = ",".join(_quote(v) for v in values)
        self._filters.append((column, f"in.({members})"))
        return self

    def overlaps(self, column: str, values: Iterable[Any]) -> "Query":
        """Array column shares at least one element with values"""
        members = ",".join(_quote(v) for v in values)
        self._filters.append((column, f"ov.{{{members}}}"))
        return self

    def ilike(self, column: str, pattern: str) -> "Query":
        self._filters.append((column, f"ilike.{pattern}"))
        return self

    def or_(self, expression: str) -> "Query":
        """Raw disjunction, e.g. 'title.ilike.*cat*,description.ilike.*cat*'"""
        self._filters.append(("or", f"({expression})"))
        return self

    def order(self, column: str, ascending: bool = False) -> "Query":
        self._order.append(f"{column}.{'asc' if ascending else 'desc'}")
        return self

    def range(self, start: int, end: int) -> "Query":
        """Inclusive row range, as in offset..offset+limit-1"""
        self._offset = start
        self._limit = end - start + 1
        return self

    def limit(self, count: int) -> "Query":
        self._limit = count
        return self

    def params(self, include_select: bool = True) -> List[Tuple[str, str]]:
        params: List[Tuple[str, str]] = []
        if include_select:
            params.append(("select", self.columns))
        params.extend(self._filters)
        if self._order:
            params.append(("order", ",".join(self._order)))
        if self._offset:
            params.append(("offset", str(self._offset)))
        if self._limit is not None:
            params.append(("limit", str(self._limit)))
        return params


class BackendClient:
    """Async client for table CRUD and RPC calls against the hosted backend"""

    def __init__(
        self,
        base_url: str = settings.SUPABASE_URL,
        api_key: str = settings.SUPABASE_ANON_KEY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = httpx.Timeout(
            settings.REQUEST_TIMEOUT_SECONDS, connect=settings.CONNECT_TIMEOUT_SECONDS
        )
        self.client: Optional[httpx.AsyncClient] = None
        self._transport = transport
        self._access_token: Optional[str] = None

    async def start(self):
        """Initialize HTTP client"""
        self.client = httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        )
        logger.info(f"Backend client initialized for {self.base_url}")

    async def stop(self):
        """Close HTTP client"""
        if self.client:
            await self.client.aclose()
            self.client = None
            logger.info("Backend client closed")

    def set_access_token(self, token: Optional[str]):
        """Use a user's access token instead of the anon key for requests"""
        self._access_token = token

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self._access_token or self.api_key}",
        }
        if extra:
            headers.update(extra)
        return headers

    async def request(
        self,
        method: str,
        path: str,
        headers: Optional[Dict[str, str]] = None,
        **kwargs,
    ) -> httpx.Response:
        """
        Make an HTTP request to the backend

        Raises:
            BackendTimeoutError: If the request exceeded the client timeout
            BackendError: On transport failure or an error status
        """
        if not self.client:
            raise BackendError("Backend client not initialized")

        try:
            response = await self.client.request(
                method, path, headers=self._headers(headers), **kwargs
            )
        except httpx.TimeoutException as e:
            logger.error(f"Request timed out for {method} {path}: {e}")
            raise BackendTimeoutError() from e
        except httpx.HTTPError as e:
            logger.error(f"Request failed for {method} {path}: {e}")
            raise BackendError(details=str(e)) from e

        if response.is_error:
            error = self._error_from_response(response)
            logger.error(
                f"HTTP error {response.status_code} for {method} {path}: "
                f"{error.code or ''} {error.details or ''}".rstrip()
            )
            raise error

        return response

    @staticmethod
    def _error_from_response(response: httpx.Response) -> GalleryError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        code = body.get("code") or body.get("error_code")
        if code is not None:
            code = str(code)
        details = (
            body.get("message")
            or body.get("error_description")
            or body.get("msg")
            or body.get("error")
            or response.text
        )

        if code == UNIQUE_VIOLATION_CODE or response.status_code == 409:
            error = ConflictError()
        elif code == INSUFFICIENT_PRIVILEGE_CODE:
            error = NotOwnerError()
        elif code == NO_ROWS_CODE or response.status_code == 404:
            error = NotFoundError()
        else:
            return BackendError(
                status_code=response.status_code, code=code, details=details
            )

        # Conflict and permission errors keep the transport details for logs
        error.status_code = response.status_code
        error.code = code
        error.details = details
        return error

    @staticmethod
    def decode_json(response: httpx.Response) -> Any:
        """
        Decode a successful response body

        Raises:
            BackendError: If the body is not JSON
        """
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error(
                f"Malformed response from {response.request.method} {response.request.url.path}: {e}"
            )
            raise BackendError(details="Malformed response") from e

    def _rows(self, response: httpx.Response) -> List[Dict[str, Any]]:
        body = self.decode_json(response)
        if body is None:
            return []
        if not isinstance(body, list) or not all(isinstance(row, dict) for row in body):
            logger.error(f"Expected a list of rows from {response.request.url.path}")
            raise BackendError(details="Malformed response")
        return body

    # Table operations
    async def select(self, query: Query) -> List[Dict[str, Any]]:
        """Fetch rows matching query"""
        response = await self.request(
            "GET", f"{REST_PREFIX}/{query.table}", params=query.params()
        )
        return self._rows(response)

    async def select_one(self, query: Query) -> Optional[Dict[str, Any]]:
        """Fetch the first matching row, or None"""
        rows = await self.select(query)
        return rows[0] if rows else None

    async def count(self, query: Query) -> int:
        """Exact row count for query, without transferring rows"""
        response = await self.request(
            "HEAD",
            f"{REST_PREFIX}/{query.table}",
            params=query.params(),
            headers={"Prefer": "count=exact"},
        )
        content_range = response.headers.get("content-range", "")
        total = content_range.rsplit("/", 1)[-1]
        return int(total) if total.isdigit() else 0

    async def insert(
        self, table: str, rows: Any, select: str = "*"
    ) -> List[Dict[str, Any]]:
        """Insert one row (dict) or many (list), returning the stored rows"""
        response = await self.request(
            "POST",
            f"{REST_PREFIX}/{table}",
            params=[("select", " ".join(select.split()))],
            json=rows,
            headers={"Prefer": "return=representation"},
        )
        return self._rows(response)

    async def update(
        self, query: Query, values: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """Update matching rows, returning them after the change"""
        response = await self.request(
            "PATCH",
            f"{REST_PREFIX}/{query.table}",
            params=query.params(),
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return self._rows(response)

    async def delete(self, query: Query) -> List[Dict[str, Any]]:
        """Delete matching rows, returning the deleted rows"""
        response = await self.request(
            "DELETE",
            f"{REST_PREFIX}/{query.table}",
            params=query.params(),
            headers={"Prefer": "return=representation"},
        )
        return self._rows(response)

    async def rpc(self, function: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Call a server-side procedure"""
        response = await self.request(
            "POST", f"{REST_PREFIX}/rpc/{function}", json=params or {}
        )
        return self.decode_json(response)
