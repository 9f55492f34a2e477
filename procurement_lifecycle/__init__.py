from procurement_lifecycle.exceptions import (
    InvalidStateError,
    NetworkError,
    PreconditionError,
    ProcurementError,
    ServerError,
    ValidationError,
)
from procurement_lifecycle.schemas.procurement import ProcurementStatus, ProofType
from procurement_lifecycle.services.lifecycle_manager import ProcurementLifecycleManager
from procurement_lifecycle.services.state_machine import Action

__all__ = [
    "Action",
    "InvalidStateError",
    "NetworkError",
    "PreconditionError",
    "ProcurementError",
    "ProcurementLifecycleManager",
    "ProcurementStatus",
    "ProofType",
    "ServerError",
    "ValidationError",
]
