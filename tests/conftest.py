"""
Shared test fixtures.

Async code is driven with asyncio.run() from plain test functions.
"""

import sys
from pathlib import Path

# Add project root to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import pytest
from typing import Optional, Union

from exceptions import LarkAuthError
from integrations.lark import LarkResult, RemoteField

# ===================
# FAKE LARK CLIENT
# ===================


class FakeLarkClient:
    """
    In-memory stand-in for LarkClient.

    Behaves like a table: created fields show up in later list_fields calls.
    Failures are configured per call:

        fake.field_failures["age"] = (1254045, "field name duplicated")
        fake.batch_responses = [None, LarkResult.failure(1254001, "bad"), TimeoutError]

    A None in batch_responses means "succeed normally". An exception class or
    instance is raised instead of returning.
    """

    def __init__(self, fields: Optional[list[RemoteField]] = None):
        self.fields: list[RemoteField] = list(fields or [])
        self.auth_code = 0
        self.list_fields_code = 0
        self.field_failures: dict[str, Union[tuple[int, str], Exception]] = {}
        self.batch_responses: list = []

        self.authenticated = False
        self.closed = False
        self.created: list[tuple[str, int]] = []
        self.batches: list[list[dict]] = []
        self._record_counter = 0

    async def __aenter__(self) -> "FakeLarkClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.closed = True
        return False

    def add_field(self, field_name: str, field_type: int) -> RemoteField:
        remote = RemoteField(
            field_id=f"fld{len(self.fields) + 1:04d}",
            field_name=field_name,
            type=field_type,
        )
        self.fields.append(remote)
        return remote

    async def authenticate(self) -> str:
        if self.auth_code != 0:
            raise LarkAuthError(self.auth_code, "app secret invalid")
        self.authenticated = True
        return "t-fake-token"

    async def list_fields(self, app_token: str, table_id: str) -> LarkResult:
        if self.list_fields_code != 0:
            return LarkResult.failure(self.list_fields_code, "TableIdNotFound")
        return LarkResult.success(list(self.fields))

    async def create_field(
        self,
        app_token: str,
        table_id: str,
        field_name: str,
        field_type: int
    ) -> LarkResult:
        failure = self.field_failures.get(field_name)
        if isinstance(failure, Exception):
            raise failure
        if failure is not None:
            return LarkResult.failure(*failure)

        self.created.append((field_name, int(field_type)))
        return LarkResult.success(self.add_field(field_name, int(field_type)).field_id)

    async def batch_create_records(
        self,
        app_token: str,
        table_id: str,
        records: list[dict]
    ) -> LarkResult:
        self.batches.append(records)
        response = self.batch_responses[len(self.batches) - 1] if len(self.batches) <= len(self.batch_responses) else None

        if isinstance(response, type) and issubclass(response, Exception):
            raise response("simulated failure")
        if isinstance(response, Exception):
            raise response
        if isinstance(response, LarkResult):
            return response

        ids = []
        for _ in records:
            self._record_counter += 1
            ids.append(f"rec{self._record_counter:05d}")
        return LarkResult.success(ids)


# ===================
# FIXTURES
# ===================

@pytest.fixture
def fake_lark() -> FakeLarkClient:
    """
    Empty fake table.

    Usage:
        def test_something(fake_lark):
            fake_lark.add_field("名前", 1)
    """
    return FakeLarkClient()


@pytest.fixture
def import_service(fake_lark):
    """ImportService wired to the fake client."""
    from services.import_service import ImportService

    return ImportService(client_factory=lambda: fake_lark)


@pytest.fixture
def sample_records() -> list:
    """Records with the field-name variants seen in real uploads."""
    return [
        {"名前": "太郎", "age": 20, "homepage": "https://example.com/taro"},
        {"名前": "花子", "age": "21", "homepage": "not a url"},
    ]


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client():
    """
    Create FastAPI test client.

    Usage:
        def test_endpoint(test_client):
            response = test_client.post("/api/imports/parse", json={"text": "{}"})
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)
