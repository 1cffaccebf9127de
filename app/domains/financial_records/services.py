import datetime
import logging
import math
import re
from typing import Optional

import pydantic
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from app.config.mongodb import FINANCIAL_RECORDS_COLLECTION, MongoDB
from app.domains.financial_records.exceptions import PersistenceError, RecordValidationError
from app.domains.financial_records.models import (
    FinancialRecordCreate,
    Pagination,
    RecordFilter,
    RecordStats,
    RecordType,
)
from app.shared.serializers import to_jsonable

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100
# largest integer BSON can store
MAX_QUANTITY = 2**63 - 1

# user lookup is disabled, every creator resolves to this display name
UNKNOWN_CREATOR = "Unknown user"

REQUIRED_FIELDS = ["recordType", "memberName", "item", "location", "unitPrice", "quantity"]
OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")


def normalize_pagination(page: int, limit: int) -> tuple[int, int]:
    page = max(page, 1)
    if limit < 1:
        limit = DEFAULT_LIMIT
    if limit > MAX_LIMIT:
        logger.info(f"Requested limit {limit} capped at {MAX_LIMIT}")
        limit = MAX_LIMIT
    return page, limit


def _is_missing(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def _to_number(value, field: str) -> float:
    if isinstance(value, bool):
        raise RecordValidationError(f"{field} must be a number", [field])
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise RecordValidationError(f"{field} must be a number", [field])
    else:
        raise RecordValidationError(f"{field} must be a number", [field])
    if not math.isfinite(number):
        raise RecordValidationError(f"{field} must be a finite number", [field])
    return number


def _parse_record_date(value) -> datetime.datetime:
    if _is_missing(value):
        return datetime.datetime.now(datetime.timezone.utc)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # epoch milliseconds, as sent by browser clients
        try:
            return datetime.datetime.fromtimestamp(value / 1000, tz=datetime.timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise RecordValidationError("recordDate is not a valid date", ["recordDate"])

    if not isinstance(value, str):
        raise RecordValidationError("recordDate is not a valid date", ["recordDate"])

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.datetime.fromisoformat(text)
    except ValueError:
        raise RecordValidationError("recordDate is not a valid date", ["recordDate"])

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed.astimezone(datetime.timezone.utc)


def validate_record_input(payload: dict) -> FinancialRecordCreate:
    """Check a raw create payload and turn it into a FinancialRecordCreate.

    Checks run in order: required fields, numeric ranges, creator id,
    record type, then record date. The first failure raises
    RecordValidationError.
    """
    if not isinstance(payload, dict):
        raise RecordValidationError("Request body must be a JSON object")

    missing = [field for field in REQUIRED_FIELDS if _is_missing(payload.get(field))]
    if missing:
        raise RecordValidationError(
            f"Missing required fields: {', '.join(missing)}", missing
        )

    unit_price = _to_number(payload["unitPrice"], "unitPrice")
    quantity = _to_number(payload["quantity"], "quantity")
    if unit_price < 0 or quantity < 1:
        raise RecordValidationError(
            "unitPrice must be zero or greater and quantity must be at least 1",
            ["unitPrice", "quantity"],
        )
    if not quantity.is_integer():
        raise RecordValidationError("quantity must be a whole number", ["quantity"])
    if quantity > MAX_QUANTITY:
        raise RecordValidationError(f"quantity must not exceed {MAX_QUANTITY}", ["quantity"])
    if not math.isfinite(unit_price * quantity):
        raise RecordValidationError(
            "unitPrice multiplied by quantity is too large", ["unitPrice", "quantity"]
        )

    created_by = payload.get("createdBy")
    if not isinstance(created_by, str) or not OBJECT_ID_PATTERN.fullmatch(created_by):
        raise RecordValidationError("createdBy is not a valid user id", ["createdBy"])

    try:
        record_type = RecordType(payload["recordType"])
    except ValueError:
        raise RecordValidationError(
            "recordType must be one of: income, expense", ["recordType"]
        )

    record_date = _parse_record_date(payload.get("recordDate"))

    details = payload.get("details")
    if isinstance(details, str):
        details = details.strip() or None

    try:
        return FinancialRecordCreate(
            record_type=record_type,
            member_name=str(payload["memberName"]).strip(),
            item=str(payload["item"]).strip(),
            details=details,
            location=str(payload["location"]).strip(),
            unit_price=unit_price,
            quantity=int(quantity),
            record_date=record_date,
            created_by=created_by,
        )
    except pydantic.ValidationError as e:
        fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise RecordValidationError(f"Invalid financial record: {e.error_count()} error(s)", fields)


def build_filter(
    member_name: Optional[str] = None,
    record_type: Optional[str] = None,
    location: Optional[str] = None,
) -> RecordFilter:
    if record_type:
        try:
            record_type = RecordType(record_type)
        except ValueError:
            raise RecordValidationError(
                "recordType must be one of: income, expense", ["recordType"]
            )
    return RecordFilter(
        member_name=member_name or None,
        record_type=record_type or None,
        location=location or None,
    )


def build_stats_pipeline(query: dict) -> list:
    return [
        {"$match": query},
        {
            "$group": {
                "_id": None,
                "totalIncome": {
                    "$sum": {"$cond": [{"$eq": ["$recordType", RecordType.INCOME.value]}, "$totalAmount", 0]}
                },
                "totalExpense": {
                    "$sum": {"$cond": [{"$eq": ["$recordType", RecordType.EXPENSE.value]}, "$totalAmount", 0]}
                },
            }
        },
    ]


class FinancialRecordService:
    def __init__(self, mongodb: MongoDB):
        self.mongodb = mongodb

    async def _collection(self) -> AsyncIOMotorCollection:
        db = await self.mongodb.ensure_connection()
        return db[FINANCIAL_RECORDS_COLLECTION]

    async def list_records(
        self,
        filters: Optional[RecordFilter] = None,
        page: int = DEFAULT_PAGE,
        limit: int = DEFAULT_LIMIT,
    ) -> dict:
        filters = filters or RecordFilter()
        page, limit = normalize_pagination(page, limit)
        query = filters.to_query()
        skip = (page - 1) * limit
        logger.info(f"Listing financial records: query={query}, page={page}, limit={limit}")

        collection = await self._collection()
        # find, count and aggregate are separate reads and are not atomic
        try:
            cursor = (
                collection.find(query)
                .sort([("recordDate", DESCENDING), ("createdAt", DESCENDING)])
                .skip(skip)
                .limit(limit)
            )
            records = await cursor.to_list(length=limit)
            total = await collection.count_documents(query)
            aggregated = await collection.aggregate(build_stats_pipeline(query)).to_list(length=1)
        except PyMongoError as e:
            raise PersistenceError(f"Failed to query financial records: {e}") from e

        totals = aggregated[0] if aggregated else {}
        total_income = totals.get("totalIncome") or 0
        total_expense = totals.get("totalExpense") or 0
        stats = RecordStats(
            totalIncome=total_income,
            totalExpense=total_expense,
            netAmount=total_income - total_expense,
        )
        pagination = Pagination(
            page=page,
            limit=limit,
            total=total,
            totalPages=math.ceil(total / limit),
        )
        logger.info(f"Found {len(records)} of {total} financial records")

        return {
            "records": [self._with_creator(record) for record in records],
            "pagination": pagination.model_dump(),
            "stats": stats.model_dump(),
        }

    async def create_record(self, payload: dict) -> dict:
        record = validate_record_input(payload)

        collection = await self._collection()
        now = datetime.datetime.now(datetime.timezone.utc)
        document = record.to_document(now)
        try:
            insert_result = await collection.insert_one(document)
        except PyMongoError as e:
            raise PersistenceError(f"Failed to save financial record: {e}") from e

        document["_id"] = insert_result.inserted_id
        logger.info(f"Inserted financial record with ID: {insert_result.inserted_id}")
        return to_jsonable(document)

    @staticmethod
    def _with_creator(record: dict) -> dict:
        record = to_jsonable(record)
        record["createdBy"] = {"username": UNKNOWN_CREATOR}
        return record
