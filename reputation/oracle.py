"""
Self-published risk and eligibility scores.

A holder publishes their own scores; dependent ledgers read them back with a
freshness check evaluated against ledger time on every read.
"""

import logging

from .chain import SECONDS_PER_DAY, Contract, ContractStorage, external, to_address
from .errors import NoScoreError, OutOfRangeError, PublishingPausedError, RateLimitedError, StaleScoreError
from .models import ScoreEntry, ScoreType, ScoreView, VerifiedScore

logger = logging.getLogger(__name__)

MAX_SCORE = 1000
DEFAULT_MAX_SCORE_AGE = 30 * SECONDS_PER_DAY
DEFAULT_MIN_PUBLISH_INTERVAL = SECONDS_PER_DAY


class OracleStorage(ContractStorage):
    def __init__(
        self,
        owner: str,
        max_score_age: int = DEFAULT_MAX_SCORE_AGE,
        min_publish_interval: int = DEFAULT_MIN_PUBLISH_INTERVAL,
        history_enabled: bool = False,
    ):
        super().__init__(owner)
        self.latest: dict[tuple[str, ScoreType], dict] = {}
        self.last_publish: dict[tuple[str, ScoreType], int] = {}
        self.history: dict[tuple[str, ScoreType], list[dict]] = {}
        self.max_score_age = max_score_age
        self.min_publish_interval = min_publish_interval
        self.publishing_paused = False
        self.history_enabled = history_enabled
        self.query_count = 0


class ScoreOracle(Contract):
    storage_class = OracleStorage

    def __init__(
        self,
        chain,
        owner: str,
        max_score_age: int = DEFAULT_MAX_SCORE_AGE,
        min_publish_interval: int = DEFAULT_MIN_PUBLISH_INTERVAL,
        history_enabled: bool = False,
    ):
        if max_score_age <= 0:
            raise OutOfRangeError("Maximum score age must be positive")
        super().__init__(
            chain,
            owner,
            max_score_age=max_score_age,
            min_publish_interval=min_publish_interval,
            history_enabled=history_enabled,
        )

    @external
    def publish_score(self, score_type: ScoreType, value: int) -> None:
        score_type = ScoreType(score_type)
        holder = self.msg_sender
        key = (holder, score_type)

        if self.storage.publishing_paused:
            raise PublishingPausedError("Score publishing is paused")
        if not 0 <= value <= MAX_SCORE:
            raise OutOfRangeError(f"Score {value} is outside 0..{MAX_SCORE}")
        last = self.storage.last_publish.get(key)
        if last is not None and self.now - last < self.storage.min_publish_interval:
            wait = self.storage.min_publish_interval - (self.now - last)
            raise RateLimitedError(f"{holder} must wait {wait}s before publishing {score_type.value} again")

        previous = self.storage.latest.get(key)
        self.storage.latest[key] = {"value": value, "published_at": self.now, "publisher": holder}
        self.storage.last_publish[key] = self.now
        if self.storage.history_enabled:
            self.storage.history.setdefault(key, []).append({"value": value, "timestamp": self.now})

        self.emit(
            "ScorePublished",
            holder=holder,
            score_type=score_type.value,
            value=value,
            previous_value=previous["value"] if previous else 0,
            timestamp=self.now,
        )
        logger.info("%s published %s=%s", holder, score_type.value, value)

    @external
    def get_latest_score(self, holder: str, score_type: ScoreType) -> int:
        """
        Audited read used by dependent ledgers.

        Every successful read is recorded as a query even though the stored
        score does not change. Stale reads emit StaleScoreRejected and fail.
        """
        holder = to_address(holder)
        score_type = ScoreType(score_type)
        entry = self.storage.latest.get((holder, score_type))
        if entry is None:
            raise NoScoreError(f"No {score_type.value} score published by {holder}")

        age = self.now - entry["published_at"]
        if age > self.storage.max_score_age:
            self.emit(
                "StaleScoreRejected",
                holder=holder,
                score_type=score_type.value,
                age=age,
                max_age=self.storage.max_score_age,
                querier=self.msg_sender,
            )
            logger.warning(
                "Rejected stale %s score of %s for %s (age %ss > %ss)",
                score_type.value, holder, self.msg_sender, age, self.storage.max_score_age,
            )
            raise StaleScoreError(f"{score_type.value} score of {holder} is {age}s old")

        self.storage.query_count += 1
        self.emit(
            "ScoreQueried",
            holder=holder,
            score_type=score_type.value,
            value=entry["value"],
            querier=self.msg_sender,
        )
        return entry["value"]

    def get_latest_score_view(self, holder: str, score_type: ScoreType) -> ScoreView:
        entry = self.storage.latest.get((to_address(holder), ScoreType(score_type)))
        if entry is None:
            return ScoreView(value=0, is_valid=False, age=0)
        age = self.now - entry["published_at"]
        return ScoreView(value=entry["value"], is_valid=age <= self.storage.max_score_age, age=age)

    def get_batch_scores(self, holders: list[str], score_type: ScoreType) -> list[ScoreView]:
        return [self.get_latest_score_view(h, score_type) for h in holders]

    def get_verified_score(self, holder: str, score_type: ScoreType) -> VerifiedScore:
        entry = self.storage.latest.get((to_address(holder), ScoreType(score_type)))
        if entry is None:
            raise NoScoreError(f"No {ScoreType(score_type).value} score published by {holder}")
        return VerifiedScore(**entry)

    def get_score_history(self, holder: str, score_type: ScoreType) -> list[ScoreEntry]:
        entries = self.storage.history.get((to_address(holder), ScoreType(score_type)), [])
        return [ScoreEntry(**e) for e in entries]

    def is_score_valid(self, holder: str, score_type: ScoreType) -> bool:
        return self.get_latest_score_view(holder, score_type).is_valid

    def time_until_next_publish(self, holder: str, score_type: ScoreType) -> int:
        last = self.storage.last_publish.get((to_address(holder), ScoreType(score_type)))
        if last is None:
            return 0
        return max(0, self.storage.min_publish_interval - (self.now - last))

    @property
    def max_score_age(self) -> int:
        return self.storage.max_score_age

    @property
    def min_publish_interval(self) -> int:
        return self.storage.min_publish_interval

    @property
    def publishing_paused(self) -> bool:
        return self.storage.publishing_paused

    @property
    def history_enabled(self) -> bool:
        return self.storage.history_enabled

    @property
    def query_count(self) -> int:
        return self.storage.query_count

    # Administration

    @external
    def set_max_score_age(self, seconds: int) -> None:
        self._only_owner()
        if seconds <= 0:
            raise OutOfRangeError("Maximum score age must be positive")
        self._update("max_score_age", seconds)

    @external
    def set_min_publish_interval(self, seconds: int) -> None:
        self._only_owner()
        if seconds < 0:
            raise OutOfRangeError("Publish interval cannot be negative")
        self._update("min_publish_interval", seconds)

    @external
    def set_publishing_paused(self, paused: bool) -> None:
        self._only_owner()
        self._update("publishing_paused", bool(paused))

    @external
    def set_history_tracking(self, enabled: bool) -> None:
        self._only_owner()
        self._update("history_enabled", bool(enabled))

    def _update(self, parameter: str, value) -> None:
        old_value = getattr(self.storage, parameter)
        setattr(self.storage, parameter, value)
        self.emit("ConfigUpdated", parameter=parameter, old_value=old_value, new_value=value)
        logger.info("Oracle %s changed from %s to %s", parameter, old_value, value)
