"""
Lark Open API client for Bitable (Lark Base).

Exposes exactly what the importer needs:
    - tenant access token exchange
    - list a table's fields
    - create one field
    - batch-create records (max 500 per call)

Every call returns a LarkResult: either data, or the provider's error code
and message. Callers branch on result.ok. Only conditions that are not
provider answers raise: LarkTransportError (no response) and
LarkResponseError (unreadable body).

No timeouts by default and no retries; a failed call is reported once.
"""

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar
from urllib.parse import urlparse, parse_qs
import re

import httpx
import structlog

from config import get_settings, Settings, LARK_MAX_BATCH_SIZE
from exceptions import (
    ConfigurationError,
    LarkAuthError,
    LarkResponseError,
    LarkTransportError,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Largest page the fields endpoint accepts
FIELDS_PAGE_SIZE = 100


@dataclass
class LarkResult(Generic[T]):
    """Uniform outcome of a Lark call."""
    data: Optional[T] = None
    code: int = 0
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.code == 0

    @classmethod
    def success(cls, data: T) -> "LarkResult[T]":
        return cls(data=data)

    @classmethod
    def failure(cls, code: int, message: str) -> "LarkResult[T]":
        return cls(code=code, message=message or f"Lark error {code}")

    def error_text(self) -> str:
        return f"[{self.code}] {self.message}"


@dataclass
class RemoteField:
    """Field as listed by the provider."""
    field_id: str
    field_name: str
    type: int


@dataclass
class LarkBaseUrlInfo:
    app_token: str
    table_id: str


_BASE_PATH = re.compile(r"/base/([^/?#]+)")


def parse_lark_base_url(url: str) -> Optional[LarkBaseUrlInfo]:
    """
    Extract app token and table id from a Base URL.

    Supported forms:
        https://xxx.larksuite.com/base/{app_token}?table={table_id}
        https://xxx.feishu.cn/base/{app_token}?table={table_id}

    Returns:
        LarkBaseUrlInfo, or None if the URL doesn't have both parts
    """
    if not url:
        return None

    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return None

    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None

    match = _BASE_PATH.search(parsed.path)
    if not match:
        return None

    table_ids = parse_qs(parsed.query).get("table")
    if not table_ids or not table_ids[0]:
        return None

    return LarkBaseUrlInfo(app_token=match.group(1), table_id=table_ids[0])


class LarkClient:
    """
    Async client for one import run.

    Usage:
        async with LarkClient.from_settings() as client:
            await client.authenticate()
            fields = await client.list_fields(app_token, table_id)
    """

    def __init__(
        self,
        app_id: Optional[str],
        app_secret: Optional[str],
        api_base: str = "https://open.larksuite.com/open-apis",
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.app_id = app_id
        self.app_secret = app_secret
        self.api_base = api_base.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._token: Optional[str] = None

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ) -> "LarkClient":
        settings = settings or get_settings()
        return cls(
            app_id=settings.lark_app_id,
            app_secret=settings.lark_app_secret,
            api_base=settings.lark_api_base,
            timeout=settings.lark_request_timeout,
            http_client=http_client,
        )

    async def __aenter__(self) -> "LarkClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    # ===================
    # TRANSPORT
    # ===================

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
        auth: bool = True
    ) -> dict:
        """
        Send one request and return the decoded JSON body.

        Raises:
            LarkTransportError: Request could not be completed
            LarkResponseError: Body is not a JSON object with an integer code
        """
        headers = {"Content-Type": "application/json; charset=utf-8"}
        if auth:
            if not self._token:
                raise ConfigurationError(
                    "tenant_access_token",
                    "LarkClient.authenticate() must be called before API requests"
                )
            headers["Authorization"] = f"Bearer {self._token}"

        url = f"{self.api_base}/{path.lstrip('/')}"

        try:
            response = await self._http.request(
                method, url, json=json, params=params, headers=headers
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(
                "lark_request_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__
            )
            raise LarkTransportError(operation, str(e) or type(e).__name__) from e

        try:
            body = response.json()
        except ValueError as e:
            logger.error(
                "lark_response_not_json",
                operation=operation,
                status_code=response.status_code
            )
            raise LarkResponseError(
                operation,
                f"HTTP {response.status_code}, body is not JSON",
                details={"status_code": response.status_code, "body": response.text[:200]}
            ) from e

        if not isinstance(body, dict) or not isinstance(body.get("code"), int):
            raise LarkResponseError(
                operation,
                "missing integer 'code'",
                details={"status_code": response.status_code}
            )

        return body

    @staticmethod
    def _data(body: dict, operation: str) -> dict:
        data = body.get("data")
        if not isinstance(data, dict):
            raise LarkResponseError(operation, "missing 'data' object")
        return data

    # ===================
    # AUTH
    # ===================

    async def get_tenant_access_token(self) -> LarkResult[str]:
        """Exchange app id + secret for a tenant access token."""
        if not self.app_id or not self.app_secret:
            raise ConfigurationError(
                "LARK_APP_ID/LARK_APP_SECRET",
                "Lark API credentials are not configured"
            )

        body = await self._request(
            "POST",
            "auth/v3/tenant_access_token/internal",
            operation="tenant_access_token",
            json={"app_id": self.app_id, "app_secret": self.app_secret},
            auth=False,
        )

        if body["code"] != 0:
            return LarkResult.failure(body["code"], body.get("msg", ""))

        token = body.get("tenant_access_token")
        if not isinstance(token, str) or not token:
            raise LarkResponseError("tenant_access_token", "missing tenant_access_token")

        return LarkResult.success(token)

    async def authenticate(self) -> str:
        """
        Obtain and keep a token for subsequent calls.

        Raises:
            ConfigurationError: Credentials not configured
            LarkAuthError: Lark rejected the credentials
        """
        result = await self.get_tenant_access_token()
        if not result.ok:
            logger.error("lark_auth_failed", lark_code=result.code, message=result.message)
            raise LarkAuthError(result.code, result.message)

        self._token = result.data
        logger.debug("lark_authenticated")
        return result.data

    # ===================
    # SCHEMA
    # ===================

    async def list_fields(self, app_token: str, table_id: str) -> LarkResult[list[RemoteField]]:
        """List every field of a table, following pagination."""
        path = f"bitable/v1/apps/{app_token}/tables/{table_id}/fields"
        fields: list[RemoteField] = []
        page_token: Optional[str] = None

        while True:
            params: dict[str, Any] = {"page_size": FIELDS_PAGE_SIZE}
            if page_token:
                params["page_token"] = page_token

            body = await self._request("GET", path, operation="list_fields", params=params)
            if body["code"] != 0:
                return LarkResult.failure(body["code"], body.get("msg", ""))

            data = self._data(body, "list_fields")
            for item in data.get("items") or []:
                try:
                    fields.append(RemoteField(
                        field_id=str(item["field_id"]),
                        field_name=str(item["field_name"]),
                        type=int(item["type"]),
                    ))
                except (KeyError, TypeError, ValueError) as e:
                    raise LarkResponseError("list_fields", f"bad field item: {e}") from e

            page_token = data.get("page_token")
            if not data.get("has_more") or not page_token:
                break

        logger.debug("lark_fields_listed", table_id=table_id, count=len(fields))
        return LarkResult.success(fields)

    async def create_field(
        self,
        app_token: str,
        table_id: str,
        field_name: str,
        field_type: int
    ) -> LarkResult[str]:
        """Create one field. Returns the new field id."""
        body = await self._request(
            "POST",
            f"bitable/v1/apps/{app_token}/tables/{table_id}/fields",
            operation="create_field",
            json={"field_name": field_name, "type": int(field_type)},
        )
        if body["code"] != 0:
            return LarkResult.failure(body["code"], body.get("msg", ""))

        field = self._data(body, "create_field").get("field")
        if not isinstance(field, dict) or not field.get("field_id"):
            raise LarkResponseError("create_field", "missing field.field_id")

        return LarkResult.success(str(field["field_id"]))

    # ===================
    # RECORDS
    # ===================

    async def batch_create_records(
        self,
        app_token: str,
        table_id: str,
        records: list[dict[str, Any]]
    ) -> LarkResult[list[str]]:
        """
        Create up to 500 records in one call.

        Returns:
            Created record ids, in the order of the input records
        """
        if len(records) > LARK_MAX_BATCH_SIZE:
            raise ValueError(
                f"batch_create accepts at most {LARK_MAX_BATCH_SIZE} records, got {len(records)}"
            )

        body = await self._request(
            "POST",
            f"bitable/v1/apps/{app_token}/tables/{table_id}/records/batch_create",
            operation="batch_create_records",
            json={"records": [{"fields": fields} for fields in records]},
        )
        if body["code"] != 0:
            return LarkResult.failure(body["code"], body.get("msg", ""))

        created = self._data(body, "batch_create_records").get("records")
        if not isinstance(created, list) or len(created) != len(records):
            raise LarkResponseError(
                "batch_create_records",
                "record count does not match request",
                details={"sent": len(records)}
            )

        record_ids = []
        for item in created:
            if not isinstance(item, dict) or not item.get("record_id"):
                raise LarkResponseError("batch_create_records", "missing record_id")
            record_ids.append(str(item["record_id"]))

        return LarkResult.success(record_ids)
