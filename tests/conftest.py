"""Shared fixtures for the test suite."""

import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from app.config.mongodb import FINANCIAL_RECORDS_COLLECTION, MongoDB
from app.domains.financial_records.routes import get_record_service
from app.domains.financial_records.services import FinancialRecordService
from main import app

CREATOR_ID = "65f1c2a4b3d2e1f0a9b8c7d6"
INSERTED_ID = ObjectId("6600aa11bb22cc33dd44ee55")


class FakeCursor:
    """Stands in for a motor cursor: records sort/skip/limit and windows its docs."""

    def __init__(self, docs=None):
        self.docs = list(docs or [])
        self.sort_spec = None
        self.skipped = 0
        self.limited = None

    def sort(self, spec):
        self.sort_spec = spec
        return self

    def skip(self, n):
        self.skipped = n
        return self

    def limit(self, n):
        self.limited = n
        return self

    async def to_list(self, length=None):
        end = self.skipped + self.limited if self.limited else None
        return self.docs[self.skipped:end]


@pytest.fixture
def make_cursor():
    """Factory for fake cursors over a list of documents."""
    return FakeCursor


@pytest.fixture
def fake_collection():
    collection = MagicMock()
    collection.find.return_value = FakeCursor()
    collection.count_documents = AsyncMock(return_value=0)
    collection.aggregate.return_value.to_list = AsyncMock(return_value=[])
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id=INSERTED_ID))
    return collection


@pytest.fixture
def fake_mongodb(fake_collection):
    """Connection manager whose database holds only the fake collection."""
    manager = MagicMock(spec=MongoDB)
    manager.ensure_connection = AsyncMock(
        return_value={FINANCIAL_RECORDS_COLLECTION: fake_collection}
    )
    return manager


@pytest.fixture
def service(fake_mongodb):
    return FinancialRecordService(fake_mongodb)


@pytest.fixture
def client(fake_mongodb):
    app.dependency_overrides[get_record_service] = lambda: FinancialRecordService(fake_mongodb)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def sample_payload():
    """Factory fixture: call with overrides to get a create payload."""
    def _make(**overrides):
        payload = {
            "recordType": "expense",
            "memberName": "Chan Tai Man",
            "item": "Printer paper",
            "details": "A4, 5 reams",
            "location": "Mong Kok",
            "unitPrice": 42.5,
            "quantity": 4,
            "recordDate": "2024-03-15T09:30:00Z",
            "createdBy": CREATOR_ID,
        }
        payload.update(overrides)
        return {k: v for k, v in payload.items() if v is not ...}
    return _make


@pytest.fixture
def sample_document():
    """Factory fixture: a stored financial record as motor returns it."""
    def _make(**overrides):
        now = datetime.datetime(2024, 3, 15, 10, 0, 0)
        doc = {
            "_id": ObjectId(),
            "recordType": "income",
            "memberName": "Chan Tai Man",
            "item": "Membership fee",
            "details": None,
            "location": "Mong Kok",
            "unitPrice": 100.0,
            "quantity": 2,
            "totalAmount": 200.0,
            "recordDate": now,
            "createdBy": ObjectId(CREATOR_ID),
            "createdAt": now,
            "updatedAt": now,
        }
        doc.update(overrides)
        return doc
    return _make
