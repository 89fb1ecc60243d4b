from .authorization_service import (
    AuthorizationEngine,
    Decision,
    DecisionReason,
    Principal,
    Verdict,
)

__all__ = [
    "AuthorizationEngine",
    "Decision",
    "DecisionReason",
    "Principal",
    "Verdict",
]
