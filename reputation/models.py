from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class TaskCategory(str, Enum):
    IDENTITY = "IDENTITY"
    FINANCIAL = "FINANCIAL"
    SOCIAL = "SOCIAL"


class TaskType(str, Enum):
    IDENTITY_VERIFIED_KYC = "IDENTITY_VERIFIED_KYC"
    IDENTITY_MULTI_FACTOR = "IDENTITY_MULTI_FACTOR"
    FINANCIAL_LITERACY_COURSE = "FINANCIAL_LITERACY_COURSE"
    FINANCIAL_SAVINGS_GOAL = "FINANCIAL_SAVINGS_GOAL"
    LOAN_REPAYMENT_SMALL = "LOAN_REPAYMENT_SMALL"
    LOAN_REPAYMENT_LARGE = "LOAN_REPAYMENT_LARGE"
    AID_DISBURSEMENT_RECEIVED = "AID_DISBURSEMENT_RECEIVED"
    COMMUNITY_VOLUNTEERISM = "COMMUNITY_VOLUNTEERISM"
    SOCIAL_EDUCATION_CERT = "SOCIAL_EDUCATION_CERT"
    SOCIAL_MENTORSHIP = "SOCIAL_MENTORSHIP"

    @property
    def code(self) -> int:
        return TASK_TYPE_CODES[self]

    @property
    def category(self) -> TaskCategory:
        return TASK_CATEGORIES[self]


# Numeric codes match the enum order of the deployed registry contract
TASK_TYPE_CODES = {task: code for code, task in enumerate(TaskType)}

TASK_CATEGORIES = {
    TaskType.IDENTITY_VERIFIED_KYC: TaskCategory.IDENTITY,
    TaskType.IDENTITY_MULTI_FACTOR: TaskCategory.IDENTITY,
    TaskType.FINANCIAL_LITERACY_COURSE: TaskCategory.FINANCIAL,
    TaskType.FINANCIAL_SAVINGS_GOAL: TaskCategory.FINANCIAL,
    TaskType.LOAN_REPAYMENT_SMALL: TaskCategory.FINANCIAL,
    TaskType.LOAN_REPAYMENT_LARGE: TaskCategory.FINANCIAL,
    TaskType.AID_DISBURSEMENT_RECEIVED: TaskCategory.FINANCIAL,
    TaskType.COMMUNITY_VOLUNTEERISM: TaskCategory.SOCIAL,
    TaskType.SOCIAL_EDUCATION_CERT: TaskCategory.SOCIAL,
    TaskType.SOCIAL_MENTORSHIP: TaskCategory.SOCIAL,
}


class PointLevel(str, Enum):
    LEVEL_D_MINOR = "LEVEL_D_MINOR"
    LEVEL_C_MAJOR = "LEVEL_C_MAJOR"
    LEVEL_B_HARMONY = "LEVEL_B_HARMONY"
    LEVEL_A_PRESTIGE = "LEVEL_A_PRESTIGE"

    @property
    def points(self) -> int:
        return POINT_VALUES[self]


POINT_VALUES = {
    PointLevel.LEVEL_D_MINOR: 100,
    PointLevel.LEVEL_C_MAJOR: 300,
    PointLevel.LEVEL_B_HARMONY: 750,
    PointLevel.LEVEL_A_PRESTIGE: 1500,
}


class ScoreType(str, Enum):
    FINANCIAL_RISK = "FINANCIAL_RISK"
    UBI_ELIGIBILITY = "UBI_ELIGIBILITY"


class LoanStatus(str, Enum):
    NONE = "NONE"
    APPLIED = "APPLIED"
    APPROVED = "APPROVED"


class ApplicationStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    DISBURSED = "DISBURSED"
    COMPLETED = "COMPLETED"


class Event(BaseModel):
    index: int
    contract: str
    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    timestamp: int

    model_config = ConfigDict(frozen=True)


class AchievementRecord(BaseModel):
    id: int
    holder: str
    task_type: TaskType
    point_level: PointLevel
    title: str
    metadata_ref: str = ""
    issuer: str
    issued_at: int

    model_config = ConfigDict(frozen=True)

    @property
    def point_value(self) -> int:
        return POINT_VALUES[self.point_level]


class AuditSummary(BaseModel):
    total_records: int
    aid_acknowledgements: int
    records: list[AchievementRecord]


class VerifiedScore(BaseModel):
    value: int
    published_at: int
    publisher: str


class ScoreEntry(BaseModel):
    value: int
    timestamp: int


class ScoreView(BaseModel):
    value: int
    is_valid: bool
    age: int


class EligibilityResult(BaseModel):
    holder: str
    points: int
    score: int
    score_valid: bool
    eligible: bool


class Loan(BaseModel):
    borrower: str
    principal: int
    interest_rate_bps: int
    applied_at: int
    disbursed_at: int = 0
    duration_days: int = 0
    repayment_deadline: int = 0
    is_repaid: bool = False
    is_approved: bool = False
    score_snapshot: int = 0
    points_snapshot: int = 0

    model_config = ConfigDict(from_attributes=True)

    @property
    def status(self) -> LoanStatus:
        return LoanStatus.APPROVED if self.is_approved else LoanStatus.APPLIED

    def can_cancel(self) -> bool:
        return not self.is_approved

    def can_repay(self) -> bool:
        return self.is_approved and not self.is_repaid


class LoanSimulation(BaseModel):
    principal: int
    duration_days: int
    assumed_score: int
    interest_rate_bps: int
    total_repayment: int


class RewardOutcome(BaseModel):
    minted: bool
    token_id: Optional[int] = None
    error: Optional[str] = None


class RepaymentReceipt(BaseModel):
    borrower: str
    amount_paid: int
    is_late: bool
    reward: RewardOutcome


class LoanStats(BaseModel):
    loans_disbursed: int
    loans_repaid: int
    total_disbursed: int
    total_repaid: int
    rewards_minted: int
    pool_balance: int


class Program(BaseModel):
    id: int
    owner: str
    name: str
    benefit_amount: int
    min_points: int
    min_score: int
    budget: int = 0
    is_active: bool = True
    created_at: int

    model_config = ConfigDict(from_attributes=True)


class Application(BaseModel):
    program_id: int
    applicant: str
    status: ApplicationStatus
    applied_at: int
    points_snapshot: int = 0
    score_snapshot: int = 0
    decided_at: Optional[int] = None
    disbursed_at: Optional[int] = None
    completed_at: Optional[int] = None
    reward_minted: bool = False

    model_config = ConfigDict(from_attributes=True)

    def can_decide(self) -> bool:
        return self.status == ApplicationStatus.PENDING


class ScoreInputRecord(BaseModel):
    task_type: TaskType
    point_level: PointLevel
    issued_at: int


class ScoreResult(BaseModel):
    financial_risk: int
    ubi_eligibility: int


# HTTP request bodies

class SenderRequest(BaseModel):
    sender: str = Field(..., description="Address submitting the transaction")


class IssueAchievementRequest(SenderRequest):
    holder: str
    task_type: TaskType
    point_level: PointLevel
    title: str
    metadata_ref: str = ""

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "sender": "0x4ddc43b3539744c80327f2f1839e93b1693e5dbd",
            "holder": "0xbe1900d7202b28c946f0418c351f03a62858b22a",
            "task_type": "IDENTITY_VERIFIED_KYC",
            "point_level": "LEVEL_C_MAJOR",
            "title": "KYC Verified",
            "metadata_ref": "ipfs://kyc-proof",
        }
    })


class AcknowledgeAidRequest(SenderRequest):
    title: str = "NGO Aid Received"


class PublishScoreRequest(SenderRequest):
    score_type: ScoreType
    value: int


class ApplyLoanRequest(SenderRequest):
    principal: int


class ApproveLoanRequest(SenderRequest):
    duration_days: int


class ScorePreviewRequest(BaseModel):
    records: list[ScoreInputRecord]
    now: Optional[int] = None


class IssuerRequest(SenderRequest):
    issuer: str


class ThresholdsRequest(SenderRequest):
    min_points: int
    min_score: int


class SettingRequest(SenderRequest):
    value: int


class ToggleRequest(SenderRequest):
    value: bool


class AdminRequest(SenderRequest):
    admin: str


class LoanCriteriaRequest(SenderRequest):
    min_reputation_points: int
    min_credit_score: int


class LoanLimitsRequest(SenderRequest):
    min_loan: int
    max_loan: int
    large_loan_threshold: int


class AmountRequest(SenderRequest):
    amount: int


class MintRequest(SenderRequest):
    to: str
    amount: int


class TokenApprovalRequest(SenderRequest):
    spender: str
    amount: int


class CreateProgramRequest(SenderRequest):
    name: str
    benefit_amount: int
    min_points: int = 0
    min_score: int = 0

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "sender": "0x3333333333333333333333333333333333333333",
            "name": "Community Scholarship",
            "benefit_amount": 100 * 10 ** 18,
            "min_points": 500,
            "min_score": 700,
        }
    })
