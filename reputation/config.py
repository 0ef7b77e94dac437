import os
from typing import Optional

from pydantic import BaseModel, Field

from . import loans, oracle, points

DEFAULT_OWNER = "0x4ddc43b3539744c80327f2f1839e93b1693e5dbd"


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    owner: str = Field(default=DEFAULT_OWNER, description="Deployer and owner of every ledger")
    genesis_timestamp: Optional[int] = Field(default=None, description="Fixed start time; wall clock when unset")

    max_score_age: int = oracle.DEFAULT_MAX_SCORE_AGE
    min_publish_interval: int = oracle.DEFAULT_MIN_PUBLISH_INTERVAL
    score_history_enabled: bool = False

    eligibility_min_points: int = points.DEFAULT_MIN_POINTS
    eligibility_min_score: int = points.DEFAULT_MIN_SCORE

    loan_min_reputation_points: int = loans.DEFAULT_MIN_REPUTATION_POINTS
    loan_min_credit_score: int = loans.DEFAULT_MIN_CREDIT_SCORE
    min_loan: int = loans.DEFAULT_MIN_LOAN
    max_loan: int = loans.DEFAULT_MAX_LOAN
    large_loan_threshold: int = loans.DEFAULT_LARGE_LOAN_THRESHOLD

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            owner=os.getenv("REPUTATION_OWNER") or defaults.owner,
            genesis_timestamp=_env_int("REPUTATION_GENESIS_TIMESTAMP", None),
            max_score_age=_env_int("REPUTATION_MAX_SCORE_AGE", defaults.max_score_age),
            min_publish_interval=_env_int("REPUTATION_MIN_PUBLISH_INTERVAL", defaults.min_publish_interval),
            score_history_enabled=_env_bool("REPUTATION_SCORE_HISTORY", defaults.score_history_enabled),
            eligibility_min_points=_env_int("REPUTATION_ELIGIBILITY_MIN_POINTS", defaults.eligibility_min_points),
            eligibility_min_score=_env_int("REPUTATION_ELIGIBILITY_MIN_SCORE", defaults.eligibility_min_score),
            loan_min_reputation_points=_env_int(
                "REPUTATION_LOAN_MIN_POINTS", defaults.loan_min_reputation_points
            ),
            loan_min_credit_score=_env_int("REPUTATION_LOAN_MIN_SCORE", defaults.loan_min_credit_score),
            min_loan=_env_int("REPUTATION_MIN_LOAN", defaults.min_loan),
            max_loan=_env_int("REPUTATION_MAX_LOAN", defaults.max_loan),
            large_loan_threshold=_env_int("REPUTATION_LARGE_LOAN_THRESHOLD", defaults.large_loan_threshold),
        )
