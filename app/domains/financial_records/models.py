# app/domains/financial_records/models.py

import re
from datetime import datetime
from enum import Enum
from typing import Optional

from bson import ObjectId
from pydantic import BaseModel, Field


class RecordType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class RecordFilter(BaseModel):
    """Optional match criteria for a read. Unset fields match everything."""

    member_name: Optional[str] = None
    record_type: Optional[RecordType] = None
    location: Optional[str] = None

    def to_query(self) -> dict:
        query = {}
        if self.member_name:
            query["memberName"] = {"$regex": re.escape(self.member_name), "$options": "i"}
        if self.record_type:
            query["recordType"] = self.record_type.value
        if self.location:
            query["location"] = self.location
        return query


class FinancialRecordCreate(BaseModel):
    record_type: RecordType
    member_name: str
    item: str
    details: Optional[str] = None
    location: str
    unit_price: float = Field(ge=0)
    quantity: int = Field(ge=1)
    record_date: datetime
    created_by: str = Field(pattern=r"^[0-9a-fA-F]{24}$")

    @property
    def total_amount(self) -> float:
        return self.unit_price * self.quantity

    def to_document(self, now: datetime) -> dict:
        return {
            "recordType": self.record_type.value,
            "memberName": self.member_name,
            "item": self.item,
            "details": self.details,
            "location": self.location,
            "unitPrice": self.unit_price,
            "quantity": self.quantity,
            "totalAmount": self.total_amount,
            "recordDate": self.record_date,
            "createdBy": ObjectId(self.created_by),
            "createdAt": now,
            "updatedAt": now,
        }


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int


class RecordStats(BaseModel):
    totalIncome: float = 0
    totalExpense: float = 0
    netAmount: float = 0
