from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from aggregation import BudgetState
from models import MAX_ROW_ID, TransactionType, UserRole


class RegisterIn(BaseModel):
    email: str
    password: str
    role: UserRole = UserRole.user


class CredentialsIn(BaseModel):
    email: str
    password: str


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    type: TransactionType


class CategoryRenameIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)


class TransactionIn(BaseModel):
    amount: Decimal = Field(..., gt=0, le=Decimal("999999.99"))
    type: TransactionType
    category_id: int = Field(..., le=MAX_ROW_ID)
    description: str = Field(..., min_length=1)
    date: date


class BudgetIn(BaseModel):
    category_id: int = Field(..., le=MAX_ROW_ID)
    limit_amount: Decimal = Field(..., gt=0, le=Decimal("999999.99"))
    month: str = Field(..., pattern=r"^\d{4}-(0[1-9]|1[0-2])$")


class BudgetLimitIn(BaseModel):
    limit_amount: Decimal = Field(..., gt=0, le=Decimal("999999.99"))


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    role: UserRole


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    name: str
    type: TransactionType
    created_at: datetime


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    amount: float
    type: TransactionType
    description: str
    date: date
    category_id: int
    category_name: str
    created_at: datetime


class BudgetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category_id: int
    category_name: str
    limit_amount: float
    month: str
    created_at: datetime
    spent: Optional[float] = None
    percentage: Optional[float] = None
    remaining: Optional[float] = None
    status: Optional[BudgetState] = None


class CategoryTotalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category_id: int
    category_name: str
    total: float


class SummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    balance: float
    total_income: float = Field(serialization_alias="totalIncome")
    total_expenses: float = Field(serialization_alias="totalExpenses")
    category_breakdown: list[CategoryTotalOut] = Field(
        serialization_alias="categoryBreakdown"
    )
