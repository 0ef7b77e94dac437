from typing import Optional

from fastapi import APIRouter, FastAPI, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings
from .deploy import deploy_system
from .errors import (
    AuthorizationError,
    FreshnessError,
    InvalidInputError,
    InvalidStateError,
    LedgerError,
    NotFoundError,
    ResourceError,
)
from .models import (
    AchievementRecord,
    AcknowledgeAidRequest,
    AdminRequest,
    AmountRequest,
    Application,
    ApplyLoanRequest,
    ApproveLoanRequest,
    AuditSummary,
    CreateProgramRequest,
    EligibilityResult,
    Event,
    IssueAchievementRequest,
    IssuerRequest,
    Loan,
    LoanCriteriaRequest,
    LoanLimitsRequest,
    LoanSimulation,
    LoanStats,
    MintRequest,
    Program,
    PublishScoreRequest,
    RepaymentReceipt,
    RewardOutcome,
    ScoreEntry,
    ScorePreviewRequest,
    ScoreResult,
    ScoreType,
    ScoreView,
    SenderRequest,
    SettingRequest,
    ThresholdsRequest,
    ToggleRequest,
    TokenApprovalRequest,
)
from .scoring import calculate_scores

router = APIRouter()

deployment = deploy_system(Settings.from_env())


def create_app(root_path: str = "") -> FastAPI:
    app = FastAPI(
        title="Reputation Lending API",
        description="Soulbound achievements, reputation points, self-published scores and reputation-gated loans",
        version="1.0.0",
        root_path=root_path,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


def _http_error(e: LedgerError) -> HTTPException:
    if isinstance(e, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, AuthorizationError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(e, InvalidInputError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(e, (InvalidStateError, FreshnessError)):
        code = status.HTTP_409_CONFLICT
    elif isinstance(e, ResourceError):
        code = status.HTTP_402_PAYMENT_REQUIRED
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail={"code": e.code, "message": e.message})


@router.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "reputation-lending", "timestamp": deployment.chain.now}


@router.get("/contracts", tags=["System"])
def get_contracts() -> dict[str, str]:
    return deployment.addresses()


@router.get("/events", response_model=list[Event], tags=["System"])
def get_events(name: Optional[str] = None, contract: Optional[str] = None) -> list[Event]:
    return deployment.chain.get_events(name=name, contract=contract)


# Stablecoin

@router.post("/token/mint", status_code=status.HTTP_204_NO_CONTENT, tags=["Token"])
def mint_tokens(request: MintRequest) -> None:
    try:
        deployment.token.mint(request.to, request.amount, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/token/approve", status_code=status.HTTP_204_NO_CONTENT, tags=["Token"])
def approve_tokens(request: TokenApprovalRequest) -> None:
    try:
        deployment.token.approve(request.spender, request.amount, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.get("/token/balances/{account}", tags=["Token"])
def get_token_balance(account: str) -> dict:
    try:
        return {"account": account.lower(), "balance": deployment.token.balance_of(account)}
    except LedgerError as e:
        raise _http_error(e)


# Achievements

@router.post("/achievements", response_model=AchievementRecord, status_code=status.HTTP_201_CREATED,
             tags=["Achievements"])
def issue_achievement(request: IssueAchievementRequest) -> AchievementRecord:
    registry = deployment.registry
    try:
        token_id = registry.issue(
            request.holder, request.task_type, request.point_level, request.title, request.metadata_ref,
            sender=request.sender,
        )
        return registry.get_data(token_id)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/achievements/acknowledge-aid", response_model=AchievementRecord,
             status_code=status.HTTP_201_CREATED, tags=["Achievements"])
def acknowledge_aid(request: AcknowledgeAidRequest) -> AchievementRecord:
    registry = deployment.registry
    try:
        return registry.get_data(registry.acknowledge_aid(request.title, sender=request.sender))
    except LedgerError as e:
        raise _http_error(e)


@router.get("/achievements/audit", response_model=AuditSummary, tags=["Achievements"])
def get_audit_log(issuer: Optional[str] = None) -> AuditSummary:
    try:
        return deployment.registry.get_audit_log(issuer=issuer)
    except LedgerError as e:
        raise _http_error(e)


@router.get("/achievements/{token_id}", response_model=AchievementRecord, tags=["Achievements"])
def get_achievement(token_id: int) -> AchievementRecord:
    try:
        return deployment.registry.get_data(token_id)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/achievements/{token_id}/burn", status_code=status.HTTP_204_NO_CONTENT, tags=["Achievements"])
def burn_achievement(token_id: int, request: SenderRequest) -> None:
    try:
        deployment.registry.burn(token_id, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/issuers", status_code=status.HTTP_204_NO_CONTENT, tags=["Achievements"])
def add_issuer(request: IssuerRequest) -> None:
    try:
        deployment.registry.add_issuer(request.issuer, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/issuers/{issuer}/remove", status_code=status.HTTP_204_NO_CONTENT, tags=["Achievements"])
def remove_issuer(issuer: str, request: SenderRequest) -> None:
    try:
        deployment.registry.remove_issuer(issuer, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.get("/issuers/{issuer}", tags=["Achievements"])
def get_issuer(issuer: str) -> dict:
    try:
        return {"issuer": issuer.lower(), "is_issuer": deployment.registry.is_issuer(issuer)}
    except LedgerError as e:
        raise _http_error(e)


@router.get("/holders/{holder}/achievements", response_model=list[AchievementRecord], tags=["Holders"])
def get_holder_achievements(holder: str) -> list[AchievementRecord]:
    try:
        return deployment.registry.get_by_holder(holder)
    except LedgerError as e:
        raise _http_error(e)


# Points and eligibility

@router.get("/holders/{holder}/points", tags=["Holders"])
def get_holder_points(holder: str) -> dict:
    try:
        return {"holder": holder.lower(), "points": deployment.points.get_total_points(holder)}
    except LedgerError as e:
        raise _http_error(e)


@router.get("/points/batch", tags=["Holders"])
def get_batch_points(holders: list[str] = Query(...)) -> list[int]:
    try:
        return deployment.points.get_batch_points(holders)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/points/thresholds", status_code=status.HTTP_204_NO_CONTENT, tags=["Holders"])
def set_point_thresholds(request: ThresholdsRequest) -> None:
    try:
        deployment.points.set_thresholds(request.min_points, request.min_score, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.get("/holders/{holder}/eligibility", response_model=EligibilityResult, tags=["Holders"])
def get_holder_eligibility(holder: str) -> EligibilityResult:
    try:
        return deployment.points.check_eligibility(holder)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/holders/{holder}/eligibility", response_model=EligibilityResult, tags=["Holders"])
def check_holder_eligibility_logged(holder: str, request: SenderRequest) -> EligibilityResult:
    try:
        return deployment.points.check_eligibility_and_log(holder, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


# Scores

@router.post("/scores", status_code=status.HTTP_201_CREATED, response_model=ScoreView, tags=["Scores"])
def publish_score(request: PublishScoreRequest) -> ScoreView:
    oracle = deployment.oracle
    try:
        oracle.publish_score(request.score_type, request.value, sender=request.sender)
        return oracle.get_latest_score_view(request.sender, request.score_type)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/scores/preview", response_model=ScoreResult, tags=["Scores"])
def preview_scores(request: ScorePreviewRequest) -> ScoreResult:
    now = request.now if request.now is not None else deployment.chain.now
    return calculate_scores(request.records, now=now)


@router.get("/scores/{score_type}/batch", response_model=list[ScoreView], tags=["Scores"])
def get_batch_scores(score_type: ScoreType, holders: list[str] = Query(...)) -> list[ScoreView]:
    try:
        return deployment.oracle.get_batch_scores(holders, score_type)
    except LedgerError as e:
        raise _http_error(e)


@router.get("/holders/{holder}/scores/{score_type}", response_model=ScoreView, tags=["Scores"])
def get_holder_score(holder: str, score_type: ScoreType) -> ScoreView:
    try:
        return deployment.oracle.get_latest_score_view(holder, score_type)
    except LedgerError as e:
        raise _http_error(e)


@router.get("/holders/{holder}/scores/{score_type}/history", response_model=list[ScoreEntry], tags=["Scores"])
def get_holder_score_history(holder: str, score_type: ScoreType) -> list[ScoreEntry]:
    try:
        return deployment.oracle.get_score_history(holder, score_type)
    except LedgerError as e:
        raise _http_error(e)


@router.get("/oracle/config", tags=["Scores"])
def get_oracle_config() -> dict:
    oracle = deployment.oracle
    return {
        "max_score_age": oracle.max_score_age,
        "min_publish_interval": oracle.min_publish_interval,
        "publishing_paused": oracle.publishing_paused,
        "history_enabled": oracle.history_enabled,
        "query_count": oracle.query_count,
    }


@router.post("/oracle/max-score-age", status_code=status.HTTP_204_NO_CONTENT, tags=["Scores"])
def set_max_score_age(request: SettingRequest) -> None:
    try:
        deployment.oracle.set_max_score_age(request.value, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/oracle/min-publish-interval", status_code=status.HTTP_204_NO_CONTENT, tags=["Scores"])
def set_min_publish_interval(request: SettingRequest) -> None:
    try:
        deployment.oracle.set_min_publish_interval(request.value, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/oracle/publishing-paused", status_code=status.HTTP_204_NO_CONTENT, tags=["Scores"])
def set_publishing_paused(request: ToggleRequest) -> None:
    try:
        deployment.oracle.set_publishing_paused(request.value, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/oracle/history", status_code=status.HTTP_204_NO_CONTENT, tags=["Scores"])
def set_history_tracking(request: ToggleRequest) -> None:
    try:
        deployment.oracle.set_history_tracking(request.value, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


# Loans

@router.get("/loans/simulate", response_model=LoanSimulation, tags=["Loans"])
def simulate_loan(principal: int, duration_days: int) -> LoanSimulation:
    return deployment.loans.simulate_loan(principal, duration_days)


@router.get("/loans/stats", response_model=LoanStats, tags=["Loans"])
def get_loan_stats() -> LoanStats:
    return deployment.loans.get_stats()


@router.post("/loans", response_model=Loan, status_code=status.HTTP_201_CREATED, tags=["Loans"])
def apply_for_loan(request: ApplyLoanRequest) -> Loan:
    try:
        return deployment.loans.apply_for_loan(request.principal, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/loans/cancel", status_code=status.HTTP_204_NO_CONTENT, tags=["Loans"])
def cancel_loan(request: SenderRequest) -> None:
    try:
        deployment.loans.cancel_loan_application(sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/loans/repay", response_model=RepaymentReceipt, tags=["Loans"])
def repay_loan(request: SenderRequest) -> RepaymentReceipt:
    try:
        return deployment.loans.repay_loan(sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/loans/pause", status_code=status.HTTP_204_NO_CONTENT, tags=["Loan administration"])
def pause_loans(request: SenderRequest) -> None:
    try:
        deployment.loans.pause(sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/loans/unpause", status_code=status.HTTP_204_NO_CONTENT, tags=["Loan administration"])
def unpause_loans(request: SenderRequest) -> None:
    try:
        deployment.loans.unpause(sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/loans/admin", status_code=status.HTTP_204_NO_CONTENT, tags=["Loan administration"])
def set_loan_admin(request: AdminRequest) -> None:
    try:
        deployment.loans.set_admin(request.admin, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/loans/criteria", status_code=status.HTTP_204_NO_CONTENT, tags=["Loan administration"])
def set_loan_criteria(request: LoanCriteriaRequest) -> None:
    try:
        deployment.loans.set_eligibility_criteria(
            request.min_reputation_points, request.min_credit_score, sender=request.sender
        )
    except LedgerError as e:
        raise _http_error(e)


@router.post("/loans/limits", status_code=status.HTTP_204_NO_CONTENT, tags=["Loan administration"])
def set_loan_limits(request: LoanLimitsRequest) -> None:
    try:
        deployment.loans.set_loan_limits(
            request.min_loan, request.max_loan, request.large_loan_threshold, sender=request.sender
        )
    except LedgerError as e:
        raise _http_error(e)


@router.post("/loans/pool/deposit", status_code=status.HTTP_204_NO_CONTENT, tags=["Loan administration"])
def deposit_funds(request: AmountRequest) -> None:
    try:
        deployment.loans.deposit_funds(request.amount, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/loans/pool/withdraw", status_code=status.HTTP_204_NO_CONTENT, tags=["Loan administration"])
def withdraw_funds(request: AmountRequest) -> None:
    try:
        deployment.loans.withdraw_funds(request.amount, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.get("/loans/{borrower}", response_model=Loan, tags=["Loans"])
def get_loan(borrower: str) -> Loan:
    try:
        return deployment.loans.get_loan(borrower)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/loans/{borrower}/approve", response_model=Loan, tags=["Loans"])
def approve_loan(borrower: str, request: ApproveLoanRequest) -> Loan:
    try:
        return deployment.loans.approve_and_disburse(borrower, request.duration_days, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/loans/{borrower}/reject", status_code=status.HTTP_204_NO_CONTENT, tags=["Loans"])
def reject_loan(borrower: str, request: SenderRequest) -> None:
    try:
        deployment.loans.reject_loan_application(borrower, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


# Benefit programs

@router.post("/programs", response_model=Program, status_code=status.HTTP_201_CREATED, tags=["Benefits"])
def create_program(request: CreateProgramRequest) -> Program:
    benefits = deployment.benefits
    try:
        program_id = benefits.create_program(
            request.name, request.benefit_amount, request.min_points, request.min_score, sender=request.sender
        )
        return benefits.get_program(program_id)
    except LedgerError as e:
        raise _http_error(e)


@router.get("/programs/{program_id}", response_model=Program, tags=["Benefits"])
def get_program(program_id: int) -> Program:
    try:
        return deployment.benefits.get_program(program_id)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/programs/{program_id}/fund", response_model=Program, tags=["Benefits"])
def fund_program(program_id: int, request: AmountRequest) -> Program:
    benefits = deployment.benefits
    try:
        benefits.fund_program(program_id, request.amount, sender=request.sender)
        return benefits.get_program(program_id)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/programs/{program_id}/withdraw", response_model=Program, tags=["Benefits"])
def withdraw_program_budget(program_id: int, request: AmountRequest) -> Program:
    benefits = deployment.benefits
    try:
        benefits.withdraw_budget(program_id, request.amount, sender=request.sender)
        return benefits.get_program(program_id)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/programs/{program_id}/deactivate", response_model=Program, tags=["Benefits"])
def deactivate_program(program_id: int, request: SenderRequest) -> Program:
    benefits = deployment.benefits
    try:
        benefits.deactivate_program(program_id, sender=request.sender)
        return benefits.get_program(program_id)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/programs/{program_id}/apply", response_model=Application, status_code=status.HTTP_201_CREATED,
             tags=["Benefits"])
def apply_to_program(program_id: int, request: SenderRequest) -> Application:
    try:
        return deployment.benefits.apply(program_id, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/programs/{program_id}/confirm", response_model=RewardOutcome, tags=["Benefits"])
def confirm_receipt(program_id: int, request: SenderRequest) -> RewardOutcome:
    try:
        return deployment.benefits.confirm_receipt(program_id, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.get("/programs/{program_id}/applications", response_model=list[Application], tags=["Benefits"])
def list_applications(program_id: int) -> list[Application]:
    try:
        return deployment.benefits.list_applications(program_id)
    except LedgerError as e:
        raise _http_error(e)


@router.get("/programs/{program_id}/applications/{applicant}", response_model=Application, tags=["Benefits"])
def get_application(program_id: int, applicant: str) -> Application:
    try:
        return deployment.benefits.get_application(program_id, applicant)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/programs/{program_id}/applications/{applicant}/approve", response_model=Application,
             tags=["Benefits"])
def approve_application(program_id: int, applicant: str, request: SenderRequest) -> Application:
    try:
        return deployment.benefits.approve_application(program_id, applicant, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/programs/{program_id}/applications/{applicant}/reject", response_model=Application,
             tags=["Benefits"])
def reject_application(program_id: int, applicant: str, request: SenderRequest) -> Application:
    try:
        return deployment.benefits.reject_application(program_id, applicant, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


@router.post("/programs/{program_id}/applications/{applicant}/disburse", response_model=Application,
             tags=["Benefits"])
def disburse_benefit(program_id: int, applicant: str, request: SenderRequest) -> Application:
    try:
        return deployment.benefits.disburse(program_id, applicant, sender=request.sender)
    except LedgerError as e:
        raise _http_error(e)


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
