from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import Field, field_serializer, field_validator

from procurement_lifecycle.schemas.common import CamelModel


class ProcurementStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PURCHASED = "PURCHASED"
    COMPLETED = "COMPLETED"


class ProofType(str, Enum):
    OR = "OR"
    DR = "DR"
    INV = "INV"

    @property
    def label(self) -> str:
        return PROOF_TYPE_LABELS[self]


PROOF_TYPE_LABELS = {
    ProofType.OR: "Official Receipt (OR)",
    ProofType.DR: "Delivery Receipt (DR)",
    ProofType.INV: "Invoice",
}


def _json_number(value: Decimal):
    # The portal API takes plain JSON numbers for quantities and costs.
    return int(value) if value == value.to_integral_value() else float(value)


def _default_if_none(value, default):
    # Legacy drafts store null for fields the form always fills in.
    return default if value is None else value


class ProcurementItemInput(CamelModel):
    name: str = ""
    unit: str = ""
    quantity: int = 1
    unit_cost: Decimal = Decimal("0")

    @field_validator("name", "unit", mode="before")
    @classmethod
    def _null_text(cls, v):
        return _default_if_none(v, "")

    @field_validator("quantity", mode="before")
    @classmethod
    def _null_quantity(cls, v):
        return _default_if_none(v, 1)

    @field_validator("unit_cost", mode="before")
    @classmethod
    def _null_unit_cost(cls, v):
        return _default_if_none(v, Decimal("0"))

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_cost

    @field_serializer("unit_cost", when_used="json")
    def _serialize_unit_cost(self, value: Decimal):
        return _json_number(value)


class ProcurementItem(CamelModel):
    name: str = ""
    description: Optional[str] = None
    unit: Optional[str] = None
    quantity: int = 0
    unit_cost: Decimal = Decimal("0")
    total_price: Optional[Decimal] = None

    @field_validator("name", mode="before")
    @classmethod
    def _null_name(cls, v):
        return _default_if_none(v, "")

    @field_validator("quantity", mode="before")
    @classmethod
    def _null_quantity(cls, v):
        return _default_if_none(v, 0)

    @field_validator("unit_cost", mode="before")
    @classmethod
    def _null_unit_cost(cls, v):
        return _default_if_none(v, Decimal("0"))

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_cost


class UserRef(CamelModel):
    full_name: Optional[str] = None
    email: Optional[str] = None


class Approval(CamelModel):
    status: str
    remarks: Optional[str] = None
    approver: Optional[UserRef] = None


class Proof(CamelModel):
    type: str
    file_url: Optional[str] = None
    description: Optional[str] = None


class AllocationSummary(CamelModel):
    allocated_amount: Decimal = Decimal("0")
    used_amount: Decimal = Decimal("0")
    program_id: Optional[int] = None
    classification_id: Optional[int] = None
    object_of_expenditure_id: Optional[int] = None

    @property
    def remaining(self) -> Decimal:
        return self.allocated_amount - self.used_amount


class ProcurementRequest(CamelModel):
    id: int
    title: str = ""
    description: Optional[str] = None
    amount: Decimal = Decimal("0")
    status: ProcurementStatus = ProcurementStatus.DRAFT
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[ProcurementItem] = Field(default_factory=list)
    approvals: List[Approval] = Field(default_factory=list)
    proofs: List[Proof] = Field(default_factory=list)
    allocation: Optional[AllocationSummary] = None
    created_by: Optional[UserRef] = None

    @field_validator("title", mode="before")
    @classmethod
    def _null_title(cls, v):
        return _default_if_none(v, "")

    @field_validator("amount", mode="before")
    @classmethod
    def _null_amount(cls, v):
        return _default_if_none(v, Decimal("0"))

    @field_validator("items", "approvals", "proofs", mode="before")
    @classmethod
    def _null_list(cls, v):
        return _default_if_none(v, [])

    @property
    def latest_remarks(self) -> Optional[str]:
        return self.approvals[0].remarks if self.approvals else None


class ProcurementDraft(CamelModel):
    id: Optional[int] = None
    title: str = ""
    description: Optional[str] = None
    allocation_id: Optional[int] = None
    status: ProcurementStatus = ProcurementStatus.DRAFT
    items: List[ProcurementItemInput] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def _null_title(cls, v):
        return _default_if_none(v, "")

    @field_validator("items", mode="before")
    @classmethod
    def _null_items(cls, v):
        return _default_if_none(v, [])


class ProcurementCreate(CamelModel):
    title: str
    description: str = ""
    allocation_id: int
    items: List[ProcurementItemInput]


class ProcurementUpdate(CamelModel):
    title: str
    description: str = ""
    items: List[ProcurementItemInput]


class RemarksRequest(CamelModel):
    remarks: Optional[str] = None


def compute_amount(items) -> Decimal:
    """Sum of quantity x unit cost over the given items."""
    return sum((item.quantity * item.unit_cost for item in items), Decimal("0"))
