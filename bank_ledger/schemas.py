"""
Pydantic schemas for API requests and responses
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .engine import LedgerConfig, ReportRow
from .money import format_amount


# Account schemas
class OpenAccountRequest(BaseModel):
    username: str = Field(..., min_length=1)
    role: str = Field(..., description="Role (customer, manager, auditor)")


class AmountRequest(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")


class TransferRequest(BaseModel):
    to_account_id: int
    amount: str = Field(..., description="Decimal amount as string")


# Rate schemas
class TaxRequest(BaseModel):
    tax_rate: Optional[str] = Field(None, description="Percentage; configured rate when omitted")


class UpdateConfigRequest(BaseModel):
    interest_rate: Optional[str] = Field(None, description="Percentage")
    existential_deposit: Optional[str] = None


class UpdateTaxRateRequest(BaseModel):
    tax_rate: str = Field(..., description="Percentage between 0 and 100")


# Responses
class BalanceResponse(BaseModel):
    account_id: int
    balance: Optional[str] = None
    reaped: bool

    @classmethod
    def from_balance(cls, account_id: int, balance: Optional[Decimal],
                     precision: int) -> 'BalanceResponse':
        return cls(
            account_id=account_id,
            balance=format_amount(balance, precision),
            reaped=balance is None
        )


class ConfigResponse(BaseModel):
    interest_rate: str
    existential_deposit: str
    tax_rate: str

    @classmethod
    def from_config(cls, config: LedgerConfig) -> 'ConfigResponse':
        return cls(**config.to_dict())


class ReportRowModel(BaseModel):
    id: int
    owner_username: str
    role: str
    balance: str

    @classmethod
    def from_row(cls, row: ReportRow, precision: int) -> 'ReportRowModel':
        return cls(
            id=row.id,
            owner_username=row.owner_username,
            role=row.role.value,
            balance=format_amount(row.balance, precision) or "reaped"
        )


class EventListResponse(BaseModel):
    count: int
    events: List[Dict[str, Any]]
