"""
Claim protocols and the orchestrator that drives them.
"""

from .claim_service import ClaimResult, ClaimService, ClaimStatus
from .optimistic import attempt_claim
from .pessimistic import attempt_claim_locked

__all__ = ['ClaimResult', 'ClaimService', 'ClaimStatus', 'attempt_claim', 'attempt_claim_locked']
