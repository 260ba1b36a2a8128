# Pydantic schemas
from app.schemas.gate_pass import (
    GatePassCreate,
    GatePassDecisionRequest,
    SecurityCheckoutRequest,
    GatePassFilter,
    GatePassResponse,
    GatePassTransitionResponse,
)

__all__ = [
    "GatePassCreate",
    "GatePassDecisionRequest",
    "SecurityCheckoutRequest",
    "GatePassFilter",
    "GatePassResponse",
    "GatePassTransitionResponse",
]
