import logging

from .chain import Contract, ContractStorage, external, non_reentrant, to_address
from .errors import (
    AlreadyAppliedError,
    AmountOutOfRangeError,
    InsufficientFundsError,
    InvalidStateTransitionError,
    NotEligibleError,
    NotFoundError,
    NotProgramOwnerError,
    OutOfRangeError,
)
from .models import Application, ApplicationStatus, PointLevel, Program, RewardOutcome, TaskType
from .oracle import MAX_SCORE

logger = logging.getLogger(__name__)

BENEFIT_REWARD = (TaskType.AID_DISBURSEMENT_RECEIVED, PointLevel.LEVEL_C_MAJOR)


class ProgramNotFoundError(NotFoundError):
    pass


class ApplicationNotFoundError(NotFoundError):
    pass


class BenefitStorage(ContractStorage):
    def __init__(self, owner: str):
        super().__init__(owner)
        self.next_program_id = 1
        self.programs: dict[int, dict] = {}
        self.applications: dict[tuple[int, str], dict] = {}


class BenefitDisbursement(Contract):
    """
    Scholarship and aid programs gated on reputation.

    Applicants must pass the point ledger's eligibility check and the
    program's own thresholds; completed disbursements earn an aid record.
    """

    storage_class = BenefitStorage

    def __init__(self, chain, owner: str, token, point_ledger, registry):
        super().__init__(chain, owner)
        self.token = token
        self.point_ledger = point_ledger
        self.registry = registry

    # Program owners

    @external
    def create_program(self, name: str, benefit_amount: int, min_points: int, min_score: int) -> int:
        if benefit_amount <= 0:
            raise AmountOutOfRangeError("Benefit amount must be positive")
        if min_points < 0 or not 0 <= min_score <= MAX_SCORE:
            raise OutOfRangeError("Program thresholds out of range")

        program_id = self.storage.next_program_id
        self.storage.next_program_id += 1
        self.storage.programs[program_id] = {
            "id": program_id,
            "owner": self.msg_sender,
            "name": name,
            "benefit_amount": benefit_amount,
            "min_points": min_points,
            "min_score": min_score,
            "created_at": self.now,
        }
        self.emit("ProgramCreated", program_id=program_id, owner=self.msg_sender, name=name,
                  benefit_amount=benefit_amount)
        logger.info("Program %s (%s) created by %s", program_id, name, self.msg_sender)
        return program_id

    @external
    @non_reentrant
    def fund_program(self, program_id: int, amount: int) -> None:
        program = self._get_program(program_id)
        if amount <= 0:
            raise AmountOutOfRangeError("Funding must be positive")
        self.storage.programs[program_id]["budget"] = program.budget + amount
        self.token.transfer_from(self.msg_sender, self.address, amount, sender=self.address)
        self.emit("ProgramFunded", program_id=program_id, funder=self.msg_sender, amount=amount)

    @external
    def deactivate_program(self, program_id: int) -> None:
        self._only_program_owner(program_id)
        self.storage.programs[program_id]["is_active"] = False
        self.emit("ProgramDeactivated", program_id=program_id)

    @external
    @non_reentrant
    def withdraw_budget(self, program_id: int, amount: int) -> None:
        program = self._only_program_owner(program_id)
        if amount <= 0:
            raise AmountOutOfRangeError("Withdrawal must be positive")
        if amount > program.budget:
            raise InsufficientFundsError(f"Program {program_id} budget {program.budget} is below {amount}")
        self.storage.programs[program_id]["budget"] = program.budget - amount
        self.token.transfer(program.owner, amount, sender=self.address)
        self.emit("BudgetWithdrawn", program_id=program_id, amount=amount)

    @external
    def approve_application(self, program_id: int, applicant: str) -> Application:
        return self._decide(program_id, to_address(applicant), ApplicationStatus.APPROVED)

    @external
    def reject_application(self, program_id: int, applicant: str) -> Application:
        return self._decide(program_id, to_address(applicant), ApplicationStatus.REJECTED)

    @external
    @non_reentrant
    def disburse(self, program_id: int, applicant: str) -> Application:
        program = self._only_program_owner(program_id)
        applicant = to_address(applicant)
        application = self._get_application(program_id, applicant)
        if application.status != ApplicationStatus.APPROVED:
            raise InvalidStateTransitionError(f"Cannot disburse an application in {application.status.value} state")
        if program.budget < program.benefit_amount:
            raise InsufficientFundsError(
                f"Program {program_id} budget {program.budget} is below {program.benefit_amount}"
            )

        self.storage.programs[program_id]["budget"] = program.budget - program.benefit_amount
        record = self.storage.applications[(program_id, applicant)]
        record["status"] = ApplicationStatus.DISBURSED
        record["disbursed_at"] = self.now

        self.token.transfer(applicant, program.benefit_amount, sender=self.address)
        self.emit("BenefitDisbursed", program_id=program_id, applicant=applicant, amount=program.benefit_amount)
        return self._get_application(program_id, applicant)

    # Applicants

    @external
    def apply(self, program_id: int) -> Application:
        program = self._get_program(program_id)
        applicant = self.msg_sender
        if not program.is_active:
            raise InvalidStateTransitionError(f"Program {program_id} is not accepting applications")
        if (program_id, applicant) in self.storage.applications:
            raise AlreadyAppliedError(f"{applicant} already applied to program {program_id}")

        eligibility = self.point_ledger.check_eligibility(applicant)
        if not eligibility.eligible:
            raise NotEligibleError(f"{applicant} does not meet the platform eligibility criteria")
        if eligibility.points < program.min_points or eligibility.score < program.min_score:
            raise NotEligibleError(f"{applicant} does not meet the thresholds of program {program_id}")

        self.storage.applications[(program_id, applicant)] = {
            "program_id": program_id,
            "applicant": applicant,
            "status": ApplicationStatus.PENDING,
            "applied_at": self.now,
            "points_snapshot": eligibility.points,
            "score_snapshot": eligibility.score,
        }
        self.emit("ApplicationSubmitted", program_id=program_id, applicant=applicant,
                  points=eligibility.points, score=eligibility.score)
        return self._get_application(program_id, applicant)

    @external
    @non_reentrant
    def confirm_receipt(self, program_id: int) -> RewardOutcome:
        applicant = self.msg_sender
        application = self._get_application(program_id, applicant)
        if application.status != ApplicationStatus.DISBURSED:
            raise InvalidStateTransitionError(f"Cannot confirm an application in {application.status.value} state")

        record = self.storage.applications[(program_id, applicant)]
        record["status"] = ApplicationStatus.COMPLETED
        record["completed_at"] = self.now

        reward = self._try_mint_reward(program_id, applicant)
        self.storage.applications[(program_id, applicant)]["reward_minted"] = reward.minted
        self.emit("ReceiptConfirmed", program_id=program_id, applicant=applicant, reward_minted=reward.minted)
        return reward

    # Reads

    def get_program(self, program_id: int) -> Program:
        return self._get_program(program_id)

    def get_application(self, program_id: int, applicant: str) -> Application:
        return self._get_application(program_id, to_address(applicant))

    def list_applications(self, program_id: int) -> list[Application]:
        self._get_program(program_id)
        return [Application(**a) for (pid, _), a in self.storage.applications.items() if pid == program_id]

    # Internals

    def _get_program(self, program_id: int) -> Program:
        data = self.storage.programs.get(program_id)
        if data is None:
            raise ProgramNotFoundError(f"Program {program_id} not found")
        return Program(**data)

    def _get_application(self, program_id: int, applicant: str) -> Application:
        data = self.storage.applications.get((program_id, applicant))
        if data is None:
            raise ApplicationNotFoundError(f"No application from {applicant} to program {program_id}")
        return Application(**data)

    def _only_program_owner(self, program_id: int) -> Program:
        program = self._get_program(program_id)
        if self.msg_sender != program.owner:
            raise NotProgramOwnerError(f"{self.msg_sender} does not own program {program_id}")
        return program

    def _decide(self, program_id: int, applicant: str, status: ApplicationStatus) -> Application:
        self._only_program_owner(program_id)
        application = self._get_application(program_id, applicant)
        if not application.can_decide():
            raise InvalidStateTransitionError(f"Application is already {application.status.value}")
        record = self.storage.applications[(program_id, applicant)]
        record["status"] = status
        record["decided_at"] = self.now
        self.emit("ApplicationDecided", program_id=program_id, applicant=applicant, status=status.value)
        return self._get_application(program_id, applicant)

    def _try_mint_reward(self, program_id: int, applicant: str) -> RewardOutcome:
        task_type, level = BENEFIT_REWARD
        program = self._get_program(program_id)
        try:
            token_id = self.registry.issue(applicant, task_type, level, f"Benefit received: {program.name}", "",
                                           sender=self.address)
        except Exception as e:
            logger.warning("Benefit reward for %s in program %s failed: %s", applicant, program_id, e)
            return RewardOutcome(minted=False, error=getattr(e, "code", type(e).__name__))
        return RewardOutcome(minted=True, token_id=token_id)
