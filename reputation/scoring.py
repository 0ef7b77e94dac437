"""
Deterministic dashboard scorer.

Turns a holder's achievement records into the two scores the holder then
publishes to the oracle. The arithmetic must match the dashboard exactly so
the displayed and on-chain scores agree.
"""

import logging
import math
import time
from typing import Iterable, Optional, Union

from .models import AchievementRecord, ScoreInputRecord, ScoreResult, ScoreType, TaskCategory, TaskType
from .oracle import MAX_SCORE

logger = logging.getLogger(__name__)

SECONDS_PER_MONTH = 30 * 24 * 60 * 60
EXCELLENT_THRESHOLD = 8000

IDENTITY_TASKS = {TaskType.IDENTITY_VERIFIED_KYC, TaskType.IDENTITY_MULTI_FACTOR}
REPAYMENT_TASKS = {TaskType.LOAN_REPAYMENT_SMALL, TaskType.LOAN_REPAYMENT_LARGE}
SOCIAL_TASKS = {TaskType.COMMUNITY_VOLUNTEERISM, TaskType.SOCIAL_EDUCATION_CERT, TaskType.SOCIAL_MENTORSHIP}

FINANCIAL_RISK_WEIGHTS = {
    TaskType.IDENTITY_VERIFIED_KYC: 3.0,
    TaskType.IDENTITY_MULTI_FACTOR: 4.0,
    TaskType.LOAN_REPAYMENT_SMALL: 10.0,
    TaskType.LOAN_REPAYMENT_LARGE: 15.0,
    TaskType.FINANCIAL_LITERACY_COURSE: 2.0,
    TaskType.FINANCIAL_SAVINGS_GOAL: 2.5,
    TaskType.AID_DISBURSEMENT_RECEIVED: 1.0,
    TaskType.COMMUNITY_VOLUNTEERISM: 2.0,
    TaskType.SOCIAL_EDUCATION_CERT: 2.0,
    TaskType.SOCIAL_MENTORSHIP: 2.5,
}

UBI_ELIGIBILITY_WEIGHTS = {
    TaskType.IDENTITY_VERIFIED_KYC: 5.0,
    TaskType.IDENTITY_MULTI_FACTOR: 6.0,
    TaskType.COMMUNITY_VOLUNTEERISM: 8.0,
    TaskType.SOCIAL_EDUCATION_CERT: 7.0,
    TaskType.SOCIAL_MENTORSHIP: 9.0,
    TaskType.FINANCIAL_LITERACY_COURSE: 2.0,
    TaskType.FINANCIAL_SAVINGS_GOAL: 1.5,
    TaskType.LOAN_REPAYMENT_SMALL: 1.0,
    TaskType.LOAN_REPAYMENT_LARGE: 1.0,
    TaskType.AID_DISBURSEMENT_RECEIVED: 3.0,
}

# (max age in months, multiplier)
RECENCY_BANDS = [(6, 1.0), (12, 0.75), (18, 0.50), (24, 0.25)]
RECENCY_FLOOR = 0.10

ScorableRecord = Union[AchievementRecord, ScoreInputRecord]


def recency_multiplier(issued_at: int, now: int) -> float:
    age_in_months = (now - issued_at) / SECONDS_PER_MONTH
    for max_months, multiplier in RECENCY_BANDS:
        if age_in_months <= max_months:
            return multiplier
    return RECENCY_FLOOR


def scale_to_thousand(raw_score: float) -> float:
    if raw_score >= EXCELLENT_THRESHOLD:
        excess = raw_score - EXCELLENT_THRESHOLD
        return 800 + min(200, (excess / EXCELLENT_THRESHOLD) * 200)
    return (raw_score / EXCELLENT_THRESHOLD) * 800


def _weighted_sum(records: list[ScorableRecord], weights: dict[TaskType, float], now: int) -> float:
    raw = 0.0
    for record in records:
        weight = weights.get(record.task_type, 0)
        raw += weight * record.point_level.points * recency_multiplier(record.issued_at, now)
    return raw


def _finalise(raw_score: float) -> int:
    return int(math.floor(max(0, min(MAX_SCORE, scale_to_thousand(raw_score)))))


def _has_identity(records: list[ScorableRecord]) -> bool:
    return any(r.task_type in IDENTITY_TASKS for r in records)


def calculate_financial_risk_score(records: Iterable[ScorableRecord], now: Optional[int] = None) -> int:
    records = list(records)
    now = int(time.time()) if now is None else now
    if not _has_identity(records):
        return 0

    raw = _weighted_sum(records, FINANCIAL_RISK_WEIGHTS, now)

    # First-time borrowers need a social record and two non-financial ones
    if not any(r.task_type in REPAYMENT_TASKS for r in records):
        has_social = any(r.task_type in SOCIAL_TASKS for r in records)
        non_financial = sum(1 for r in records if r.task_type.category != TaskCategory.FINANCIAL)
        if not has_social or non_financial < 2:
            return 0

    return _finalise(raw)


def calculate_ubi_eligibility_score(records: Iterable[ScorableRecord], now: Optional[int] = None) -> int:
    records = list(records)
    now = int(time.time()) if now is None else now
    if not _has_identity(records):
        return 0
    return _finalise(_weighted_sum(records, UBI_ELIGIBILITY_WEIGHTS, now))


def calculate_scores(records: Iterable[ScorableRecord], now: Optional[int] = None) -> ScoreResult:
    records = list(records)
    return ScoreResult(
        financial_risk=calculate_financial_risk_score(records, now),
        ubi_eligibility=calculate_ubi_eligibility_score(records, now),
    )


def publish_scores(registry, oracle, holder: str) -> ScoreResult:
    """Score the holder's current records at ledger time and publish both results."""
    records = registry.get_by_holder(holder)
    result = calculate_scores(records, now=oracle.now)
    oracle.publish_score(ScoreType.FINANCIAL_RISK, result.financial_risk, sender=holder)
    oracle.publish_score(ScoreType.UBI_ELIGIBILITY, result.ubi_eligibility, sender=holder)
    logger.info("Published scores for %s: %s", holder, result)
    return result
