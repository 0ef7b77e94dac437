"""
Reputation-gated lending.

One loan per borrower moves through apply -> approve/disburse -> repay. Every
entry point commits its own state before calling the stablecoin or the
achievement registry, and the reward mint on repayment is isolated so that a
failing registry never blocks settlement.
"""

import logging

from .chain import SECONDS_PER_DAY, Contract, ContractStorage, external, non_reentrant, to_address, to_recipient
from .errors import (
    AlreadyActiveError,
    AlreadyApprovedError,
    AlreadyRepaidError,
    AmountOutOfRangeError,
    ContractPausedError,
    FreshnessError,
    InsufficientFundsError,
    InsufficientReputationError,
    InsufficientScoreError,
    InvalidDurationError,
    InvalidLimitsError,
    NotApprovedError,
    NotFoundError,
    OutOfRangeError,
    UnauthorizedError,
)
from .models import (
    Loan,
    LoanSimulation,
    LoanStats,
    LoanStatus,
    PointLevel,
    RepaymentReceipt,
    RewardOutcome,
    ScoreType,
    TaskType,
)
from .oracle import MAX_SCORE

logger = logging.getLogger(__name__)

BPS_DENOMINATOR = 10_000
DAYS_PER_YEAR = 365
MAX_DURATION_DAYS = 365

# The view path cannot run the audited oracle read, so simulations assume this score
SIMULATION_PLACEHOLDER_SCORE = 750

# (minimum score, annual rate in bps), checked top down
INTEREST_RATE_BANDS = [
    (800, 500),
    (700, 750),
    (600, 1000),
    (0, 1500),
]

DEFAULT_MIN_REPUTATION_POINTS = 300
DEFAULT_MIN_CREDIT_SCORE = 500
DEFAULT_MIN_LOAN = 10 * 10 ** 18
DEFAULT_MAX_LOAN = 5_000 * 10 ** 18
DEFAULT_LARGE_LOAN_THRESHOLD = 1_000 * 10 ** 18

SMALL_LOAN_REWARD = (TaskType.LOAN_REPAYMENT_SMALL, PointLevel.LEVEL_C_MAJOR)
LARGE_LOAN_REWARD = (TaskType.LOAN_REPAYMENT_LARGE, PointLevel.LEVEL_A_PRESTIGE)


def interest_rate_for_score(score: int) -> int:
    for minimum, rate_bps in INTEREST_RATE_BANDS:
        if score >= minimum:
            return rate_bps
    return INTEREST_RATE_BANDS[-1][1]


def calculate_total_repayment(principal: int, rate_bps: int, duration_days: int) -> int:
    """Simple interest over the agreed duration, truncating like integer EVM math."""
    interest = principal * rate_bps * duration_days // (BPS_DENOMINATOR * DAYS_PER_YEAR)
    return principal + interest


class LoanNotFoundError(NotFoundError):
    pass


class LoanStorage(ContractStorage):
    def __init__(
        self,
        owner: str,
        min_reputation_points: int = DEFAULT_MIN_REPUTATION_POINTS,
        min_credit_score: int = DEFAULT_MIN_CREDIT_SCORE,
        min_loan: int = DEFAULT_MIN_LOAN,
        max_loan: int = DEFAULT_MAX_LOAN,
        large_loan_threshold: int = DEFAULT_LARGE_LOAN_THRESHOLD,
    ):
        super().__init__(owner)
        self.admin = owner
        self.paused = False
        self.loans: dict[str, dict] = {}
        self.min_reputation_points = min_reputation_points
        self.min_credit_score = min_credit_score
        self.min_loan = min_loan
        self.max_loan = max_loan
        self.large_loan_threshold = large_loan_threshold
        self.loans_disbursed = 0
        self.loans_repaid = 0
        self.total_disbursed = 0
        self.total_repaid = 0
        self.rewards_minted = 0


class LoanManager(Contract):
    storage_class = LoanStorage

    def __init__(self, chain, owner: str, token, point_ledger, oracle, registry, **limits):
        super().__init__(chain, owner, **limits)
        _validate_limits(self.storage.min_loan, self.storage.max_loan, self.storage.large_loan_threshold)
        self.token = token
        self.point_ledger = point_ledger
        self.oracle = oracle
        self.registry = registry

    # Borrower actions

    @external
    @non_reentrant
    def apply_for_loan(self, principal: int) -> Loan:
        self._when_not_paused()
        borrower = self.msg_sender
        if borrower in self.storage.loans:
            raise AlreadyActiveError(f"{borrower} already has an active loan")
        if not self.storage.min_loan <= principal <= self.storage.max_loan:
            raise AmountOutOfRangeError(
                f"Principal {principal} is outside {self.storage.min_loan}..{self.storage.max_loan}"
            )

        points = self.point_ledger.get_total_points(borrower)
        if points < self.storage.min_reputation_points:
            raise InsufficientReputationError(
                f"{borrower} has {points} points, {self.storage.min_reputation_points} required"
            )

        try:
            score = self.oracle.get_latest_score(borrower, ScoreType.FINANCIAL_RISK, sender=self.address)
        except FreshnessError as e:
            raise InsufficientScoreError(f"No fresh FINANCIAL_RISK score for {borrower}: {e.code}") from e
        if score < self.storage.min_credit_score:
            raise InsufficientScoreError(
                f"Score {score} of {borrower} is below {self.storage.min_credit_score}"
            )

        rate_bps = interest_rate_for_score(score)
        self.storage.loans[borrower] = {
            "borrower": borrower,
            "principal": principal,
            "interest_rate_bps": rate_bps,
            "applied_at": self.now,
            "score_snapshot": score,
            "points_snapshot": points,
        }
        self.emit(
            "LoanApplied",
            borrower=borrower,
            principal=principal,
            interest_rate_bps=rate_bps,
            score=score,
            points=points,
        )
        logger.info("Loan application from %s for %s at %s bps", borrower, principal, rate_bps)
        return Loan(**self.storage.loans[borrower])

    @external
    def cancel_loan_application(self) -> None:
        borrower = self.msg_sender
        loan = self._get_loan(borrower)
        if not loan.can_cancel():
            raise AlreadyApprovedError(f"Loan of {borrower} is already approved")
        del self.storage.loans[borrower]
        self.emit("LoanCancelled", borrower=borrower, cancelled_by=borrower)

    @external
    @non_reentrant
    def repay_loan(self) -> RepaymentReceipt:
        self._when_not_paused()
        borrower = self.msg_sender
        loan = self._get_loan(borrower)
        if not loan.is_approved:
            raise NotApprovedError(f"Loan of {borrower} has not been approved")
        if loan.is_repaid:
            raise AlreadyRepaidError(f"Loan of {borrower} is already repaid")

        total_due = calculate_total_repayment(loan.principal, loan.interest_rate_bps, loan.duration_days)
        # Informational only, lateness carries no penalty interest
        is_late = self.now > loan.repayment_deadline

        self.storage.loans[borrower]["is_repaid"] = True
        self.storage.loans_repaid += 1
        self.storage.total_repaid += total_due

        self.token.transfer_from(borrower, self.address, total_due, sender=self.address)
        reward = self._try_mint_reward(borrower, loan.principal)

        del self.storage.loans[borrower]
        self.emit(
            "LoanRepaid",
            borrower=borrower,
            amount=total_due,
            is_late=is_late,
            reward_minted=reward.minted,
        )
        logger.info("Loan of %s repaid (%s, late=%s, reward=%s)", borrower, total_due, is_late, reward.minted)
        return RepaymentReceipt(borrower=borrower, amount_paid=total_due, is_late=is_late, reward=reward)

    # Administration

    @external
    @non_reentrant
    def approve_and_disburse(self, borrower: str, duration_days: int) -> Loan:
        self._when_not_paused()
        self._only_admin()
        borrower = to_address(borrower)
        loan = self._get_loan(borrower)
        if loan.is_approved:
            raise AlreadyApprovedError(f"Loan of {borrower} is already approved")
        if not 0 < duration_days <= MAX_DURATION_DAYS:
            raise InvalidDurationError(f"Duration {duration_days} days is outside 1..{MAX_DURATION_DAYS}")
        available = self.pool_balance()
        if available < loan.principal:
            raise InsufficientFundsError(f"Pool holds {available}, loan needs {loan.principal}")

        deadline = self.now + duration_days * SECONDS_PER_DAY
        self.storage.loans[borrower].update({
            "is_approved": True,
            "disbursed_at": self.now,
            "duration_days": duration_days,
            "repayment_deadline": deadline,
        })
        self.storage.loans_disbursed += 1
        self.storage.total_disbursed += loan.principal

        self.token.transfer(borrower, loan.principal, sender=self.address)

        total_due = calculate_total_repayment(loan.principal, loan.interest_rate_bps, duration_days)
        self.emit("LoanApproved", borrower=borrower, approved_by=self.msg_sender, duration_days=duration_days)
        self.emit(
            "LoanDisbursed",
            borrower=borrower,
            principal=loan.principal,
            interest_rate_bps=loan.interest_rate_bps,
            repayment_deadline=deadline,
            total_repayment=total_due,
        )
        logger.info("Disbursed %s to %s for %s days", loan.principal, borrower, duration_days)
        return Loan(**self.storage.loans[borrower])

    @external
    def reject_loan_application(self, borrower: str) -> None:
        self._only_admin()
        borrower = to_address(borrower)
        loan = self._get_loan(borrower)
        if not loan.can_cancel():
            raise AlreadyApprovedError(f"Loan of {borrower} is already approved")
        del self.storage.loans[borrower]
        self.emit("LoanCancelled", borrower=borrower, cancelled_by=self.msg_sender)

    @external
    def set_admin(self, admin: str) -> None:
        self._only_owner()
        admin = to_recipient(admin)
        previous = self.storage.admin
        self.storage.admin = admin
        self.emit("AdminUpdated", old_admin=previous, new_admin=admin)

    @external
    def pause(self) -> None:
        self._only_owner()
        self.storage.paused = True
        self.emit("Paused", account=self.msg_sender)

    @external
    def unpause(self) -> None:
        self._only_owner()
        self.storage.paused = False
        self.emit("Unpaused", account=self.msg_sender)

    @external
    def set_eligibility_criteria(self, min_reputation_points: int, min_credit_score: int) -> None:
        self._only_owner()
        if min_reputation_points < 0 or not 0 <= min_credit_score <= MAX_SCORE:
            raise OutOfRangeError("Eligibility criteria out of range")
        self.emit(
            "EligibilityCriteriaUpdated",
            old_min_points=self.storage.min_reputation_points,
            new_min_points=min_reputation_points,
            old_min_score=self.storage.min_credit_score,
            new_min_score=min_credit_score,
        )
        self.storage.min_reputation_points = min_reputation_points
        self.storage.min_credit_score = min_credit_score

    @external
    def set_loan_limits(self, min_loan: int, max_loan: int, large_loan_threshold: int) -> None:
        self._only_owner()
        _validate_limits(min_loan, max_loan, large_loan_threshold)
        self.storage.min_loan = min_loan
        self.storage.max_loan = max_loan
        self.storage.large_loan_threshold = large_loan_threshold
        self.emit("LoanLimitsUpdated", min_loan=min_loan, max_loan=max_loan, large_loan_threshold=large_loan_threshold)

    @external
    @non_reentrant
    def deposit_funds(self, amount: int) -> None:
        if amount <= 0:
            raise AmountOutOfRangeError("Deposit must be positive")
        self.token.transfer_from(self.msg_sender, self.address, amount, sender=self.address)
        self.emit("FundsDeposited", depositor=self.msg_sender, amount=amount)

    @external
    @non_reentrant
    def withdraw_funds(self, amount: int) -> None:
        self._only_owner()
        if amount <= 0:
            raise AmountOutOfRangeError("Withdrawal must be positive")
        available = self.pool_balance()
        if amount > available:
            raise InsufficientFundsError(f"Pool holds {available}, cannot withdraw {amount}")
        self.token.transfer(self.storage.owner, amount, sender=self.address)
        self.emit("FundsWithdrawn", recipient=self.storage.owner, amount=amount)

    # Reads

    def get_loan(self, borrower: str) -> Loan:
        return self._get_loan(to_address(borrower))

    def get_loan_status(self, borrower: str) -> LoanStatus:
        data = self.storage.loans.get(to_address(borrower))
        if data is None:
            return LoanStatus.NONE
        return Loan(**data).status

    def simulate_loan(self, principal: int, duration_days: int) -> LoanSimulation:
        rate_bps = interest_rate_for_score(SIMULATION_PLACEHOLDER_SCORE)
        return LoanSimulation(
            principal=principal,
            duration_days=duration_days,
            assumed_score=SIMULATION_PLACEHOLDER_SCORE,
            interest_rate_bps=rate_bps,
            total_repayment=calculate_total_repayment(principal, rate_bps, duration_days),
        )

    def calculate_total_repayment(self, principal: int, rate_bps: int, duration_days: int) -> int:
        return calculate_total_repayment(principal, rate_bps, duration_days)

    def pool_balance(self) -> int:
        return self.token.balance_of(self.address)

    def get_stats(self) -> LoanStats:
        return LoanStats(
            loans_disbursed=self.storage.loans_disbursed,
            loans_repaid=self.storage.loans_repaid,
            total_disbursed=self.storage.total_disbursed,
            total_repaid=self.storage.total_repaid,
            rewards_minted=self.storage.rewards_minted,
            pool_balance=self.pool_balance(),
        )

    @property
    def admin(self) -> str:
        return self.storage.admin

    @property
    def paused(self) -> bool:
        return self.storage.paused

    # Internals

    def _get_loan(self, borrower: str) -> Loan:
        data = self.storage.loans.get(borrower)
        if data is None:
            raise LoanNotFoundError(f"No loan for {borrower}")
        return Loan(**data)

    def _only_admin(self) -> None:
        if self.msg_sender != self.storage.admin:
            raise UnauthorizedError(f"{self.msg_sender} is not the loan admin")

    def _when_not_paused(self) -> None:
        if self.storage.paused:
            raise ContractPausedError("Loan manager is paused")

    def _reward_for(self, principal: int) -> tuple[TaskType, PointLevel]:
        if principal < self.storage.large_loan_threshold:
            return SMALL_LOAN_REWARD
        return LARGE_LOAN_REWARD

    def _try_mint_reward(self, borrower: str, principal: int) -> RewardOutcome:
        task_type, level = self._reward_for(principal)
        title = "Small Loan Repayment" if task_type == TaskType.LOAN_REPAYMENT_SMALL else "Large Loan Repayment"
        try:
            token_id = self.registry.issue(borrower, task_type, level, title, "", sender=self.address)
        except Exception as e:
            logger.warning("Reward mint for %s failed, repayment stands: %s", borrower, e)
            return RewardOutcome(minted=False, error=getattr(e, "code", type(e).__name__))
        self.storage.rewards_minted += 1
        return RewardOutcome(minted=True, token_id=token_id)


def _validate_limits(min_loan: int, max_loan: int, large_loan_threshold: int) -> None:
    if not 0 < min_loan < large_loan_threshold <= max_loan:
        raise InvalidLimitsError(
            f"Loan limits must satisfy 0 < min ({min_loan}) < threshold ({large_loan_threshold}) <= max ({max_loan})"
        )
