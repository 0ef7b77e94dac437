import logging
from typing import Optional

from .chain import Contract, ContractStorage, external, to_address, to_recipient
from .errors import (
    AlreadyConfiguredError,
    InvalidContractError,
    OracleUnavailableError,
    OutOfRangeError,
    UnauthorizedError,
)
from .models import EligibilityResult, ScoreType
from .oracle import MAX_SCORE, ScoreOracle

logger = logging.getLogger(__name__)

DEFAULT_MIN_POINTS = 500
DEFAULT_MIN_SCORE = 700


class PointStorage(ContractStorage):
    def __init__(self, owner: str, min_points: int = DEFAULT_MIN_POINTS, min_score: int = DEFAULT_MIN_SCORE):
        super().__init__(owner)
        self.registry: Optional[str] = None
        self.oracle: Optional[str] = None
        self.totals: dict[str, int] = {}
        self.min_points = min_points
        self.min_score = min_score


class PointLedger(Contract):
    """
    Running reputation total per holder.

    The only write path is add_points, and it accepts calls from the bound
    achievement registry alone. Totals never decrease.
    """

    storage_class = PointStorage

    def __init__(self, chain, owner: str, oracle=None, min_points: int = DEFAULT_MIN_POINTS,
                 min_score: int = DEFAULT_MIN_SCORE):
        if not 0 <= min_score <= MAX_SCORE:
            raise OutOfRangeError(f"Minimum score {min_score} is outside 0..{MAX_SCORE}")
        super().__init__(chain, owner, min_points=min_points, min_score=min_score)
        if oracle is not None:
            self.storage.oracle = self._resolve_oracle(oracle.address).address

    # Configuration

    @external
    def set_registry(self, registry: str) -> None:
        self._only_owner()
        if self.storage.registry is not None:
            raise AlreadyConfiguredError("Achievement registry is already bound")
        self.storage.registry = to_recipient(registry)
        self.emit("RegistryBound", registry=self.storage.registry)

    @external
    def set_oracle(self, oracle: str) -> None:
        self._only_owner()
        new_oracle = self._resolve_oracle(oracle).address
        previous = self.storage.oracle
        self.storage.oracle = new_oracle
        self.emit("OracleUpdated", old_oracle=previous, new_oracle=new_oracle)

    @property
    def oracle(self) -> Optional[ScoreOracle]:
        if self.storage.oracle is None:
            return None
        return self.chain.contracts[self.storage.oracle]

    def _resolve_oracle(self, address: str) -> ScoreOracle:
        contract = self.chain.contracts.get(to_recipient(address))
        if not isinstance(contract, ScoreOracle):
            raise InvalidContractError(f"{address} is not a score oracle on this chain")
        return contract

    @external
    def set_thresholds(self, min_points: int, min_score: int) -> None:
        self._only_owner()
        if min_points < 0:
            raise OutOfRangeError("Minimum points cannot be negative")
        if not 0 <= min_score <= MAX_SCORE:
            raise OutOfRangeError(f"Minimum score {min_score} is outside 0..{MAX_SCORE}")
        old_points, old_score = self.storage.min_points, self.storage.min_score
        self.storage.min_points = min_points
        self.storage.min_score = min_score
        self.emit(
            "ThresholdsUpdated",
            old_min_points=old_points,
            new_min_points=min_points,
            old_min_score=old_score,
            new_min_score=min_score,
        )

    @property
    def registry(self) -> Optional[str]:
        return self.storage.registry

    @property
    def min_points(self) -> int:
        return self.storage.min_points

    @property
    def min_score(self) -> int:
        return self.storage.min_score

    # Writes

    @external
    def add_points(self, holder: str, amount: int) -> int:
        if self.storage.registry is None or self.msg_sender != self.storage.registry:
            raise UnauthorizedError(f"{self.msg_sender} may not add points")
        holder = to_recipient(holder)
        if amount <= 0:
            raise OutOfRangeError("Point amount must be positive")

        new_total = self.storage.totals.get(holder, 0) + amount
        self.storage.totals[holder] = new_total
        self.emit("PointsAdded", holder=holder, amount=amount, new_total=new_total)
        logger.info("Added %s points to %s (total %s)", amount, holder, new_total)
        return new_total

    # Reads

    def get_total_points(self, holder: str) -> int:
        return self.storage.totals.get(to_address(holder), 0)

    def get_batch_points(self, holders: list[str]) -> list[int]:
        return [self.get_total_points(h) for h in holders]

    def _require_oracle(self):
        if self.oracle is None:
            raise OracleUnavailableError("Score oracle is not configured")
        return self.oracle

    def check_eligibility(self, holder: str) -> EligibilityResult:
        """Side-effect free; a stale or missing score reads as ineligible."""
        oracle = self._require_oracle()
        holder = to_address(holder)
        points = self.get_total_points(holder)
        view = oracle.get_latest_score_view(holder, ScoreType.UBI_ELIGIBILITY)

        return EligibilityResult(
            holder=holder,
            points=points,
            score=view.value,
            score_valid=view.is_valid,
            eligible=view.is_valid and self._meets_thresholds(points, view.value),
        )

    @external
    def check_eligibility_and_log(self, holder: str) -> EligibilityResult:
        oracle = self._require_oracle()
        holder = to_address(holder)
        points = self.get_total_points(holder)
        # Raises NoScoreError / StaleScoreError
        score = oracle.get_latest_score(holder, ScoreType.UBI_ELIGIBILITY, sender=self.address)

        eligible = self._meets_thresholds(points, score)
        self.emit("EligibilityChecked", holder=holder, points=points, score=score, eligible=eligible)
        return EligibilityResult(holder=holder, points=points, score=score, score_valid=True, eligible=eligible)

    def _meets_thresholds(self, points: int, score: int) -> bool:
        return points >= self.storage.min_points and score >= self.storage.min_score
