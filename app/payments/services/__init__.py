"""
Payment services.

- SecurityGate: Withdrawal security code verification and management
- WithdrawalService: Eligible order selection and batch settlement
- CollectionService: Mobile-money collection requests for orders
"""

from payments.services.collection_service import CollectionService
from payments.services.security_gate import GateDecision, SecurityGate
from payments.services.withdrawal_service import WithdrawalService

__all__ = [
    "CollectionService",
    "GateDecision",
    "SecurityGate",
    "WithdrawalService",
]
