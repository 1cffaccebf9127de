import json
import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.domains.financial_records.exceptions import RecordValidationError
from app.domains.financial_records.services import (
    DEFAULT_LIMIT,
    DEFAULT_PAGE,
    FinancialRecordService,
    build_filter,
)

logger = logging.getLogger(__name__)

router = APIRouter()

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_int(value: Optional[str], default: int) -> int:
    """Read the leading integer of a query value, falling back to ``default``."""
    if value is None:
        return default
    match = _LEADING_INT.match(value)
    if not match:
        return default
    return int(match.group(1))


# Dependency to build the service around the app's connection manager
def get_record_service(request: Request) -> FinancialRecordService:
    return FinancialRecordService(request.app.state.mongodb)


def _error_response(status_code: int, message: str, error: Optional[str] = None) -> JSONResponse:
    content = {"success": False, "message": message}
    if error is not None:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content)


@router.get("/financial-records")
async def list_financial_records(
    request: Request,
    service: FinancialRecordService = Depends(get_record_service),
):
    params = request.query_params
    page = parse_int(params.get("page"), DEFAULT_PAGE)
    limit = parse_int(params.get("limit"), DEFAULT_LIMIT)
    logger.info(
        f"Query params: memberName={params.get('memberName')!r}, recordType={params.get('recordType')!r}, "
        f"location={params.get('location')!r}, page={page}, limit={limit}"
    )

    try:
        filters = build_filter(
            member_name=params.get("memberName"),
            record_type=params.get("recordType"),
            location=params.get("location"),
        )
        data = await service.list_records(filters, page=page, limit=limit)
    except RecordValidationError as e:
        logger.warning(f"Rejected financial record query: {e.message}")
        return _error_response(400, e.message)
    except Exception as e:
        logger.error(f"Error fetching financial records: {e}")
        return _error_response(
            500, f"Failed to fetch financial records: {e}", error=type(e).__name__
        )

    return {"success": True, "data": data}


@router.post("/financial-records", status_code=201)
async def create_financial_record(
    request: Request,
    service: FinancialRecordService = Depends(get_record_service),
):
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Rejected financial record with malformed JSON body")
        return _error_response(400, "Request body must be valid JSON")

    try:
        record = await service.create_record(payload)
    except RecordValidationError as e:
        logger.warning(f"Financial record validation failed: {e.message}")
        return _error_response(400, e.message)
    except Exception as e:
        logger.error(f"Error creating financial record: {e}")
        return _error_response(500, f"Failed to create financial record: {e}")

    return JSONResponse(
        status_code=201,
        content={"success": True, "message": "Financial record created", "data": record},
    )
