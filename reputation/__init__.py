"""
Reputation and Lending Ledgers

This package provides:
- Non-transferable achievement records that push points into a reputation ledger
- A self-published, freshness-checked score oracle
- Reputation-gated loans: apply → approve/disburse → repay → reward
- Benefit programs that reuse the same eligibility and reward path
- The deterministic dashboard scorer used to produce published scores
"""

from .benefits import BenefitDisbursement
from .chain import ZERO_ADDRESS, Chain
from .config import Settings
from .deploy import Deployment, deploy_system
from .loans import LoanManager, calculate_total_repayment, interest_rate_for_score
from .models import (
    AchievementRecord,
    ApplicationStatus,
    Loan,
    LoanStatus,
    PointLevel,
    ScoreType,
    TaskType,
)
from .oracle import ScoreOracle
from .points import PointLedger
from .registry import AchievementRegistry
from .token import StableToken

__all__ = [
    "AchievementRecord",
    "AchievementRegistry",
    "ApplicationStatus",
    "BenefitDisbursement",
    "Chain",
    "Deployment",
    "Loan",
    "LoanManager",
    "LoanStatus",
    "PointLedger",
    "PointLevel",
    "ScoreOracle",
    "ScoreType",
    "Settings",
    "StableToken",
    "TaskType",
    "ZERO_ADDRESS",
    "calculate_total_repayment",
    "deploy_system",
    "interest_rate_for_score",
]
