from decimal import Decimal
from typing import Optional

from pydantic import Field

from procurement_lifecycle.schemas.common import CamelModel


class ProgramRef(CamelModel):
    code: Optional[str] = None
    name: Optional[str] = None


class NamedRef(CamelModel):
    name: Optional[str] = None


class BudgetAllocation(CamelModel):
    id: int
    allocated_amount: Decimal = Decimal("0")
    used_amount: Decimal = Decimal("0")
    program: Optional[ProgramRef] = None
    classification: Optional[NamedRef] = None
    object_of_expenditure: Optional[NamedRef] = Field(None, alias="object")

    @property
    def remaining(self) -> Decimal:
        return self.allocated_amount - self.used_amount

    @property
    def label(self) -> str:
        program = self.program or ProgramRef()
        classification = (self.classification.name if self.classification else None) or "Unknown"
        obj = (self.object_of_expenditure.name if self.object_of_expenditure else None) or "Unknown"
        return (
            f"{program.code or 'N/A'} – {program.name or 'Unknown'}"
            f" • {classification} • {obj}"
        )

    def covers(self, amount: Decimal) -> bool:
        return self.remaining >= amount
