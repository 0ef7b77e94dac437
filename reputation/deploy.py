import logging
from dataclasses import dataclass
from typing import Optional

from .benefits import BenefitDisbursement
from .chain import Chain
from .config import Settings
from .loans import LoanManager
from .oracle import ScoreOracle
from .points import PointLedger
from .registry import AchievementRegistry
from .token import StableToken

logger = logging.getLogger(__name__)


@dataclass
class Deployment:
    chain: Chain
    owner: str
    token: StableToken
    oracle: ScoreOracle
    points: PointLedger
    registry: AchievementRegistry
    loans: LoanManager
    benefits: BenefitDisbursement

    def addresses(self) -> dict[str, str]:
        return {
            "token": self.token.address,
            "oracle": self.oracle.address,
            "points": self.points.address,
            "registry": self.registry.address,
            "loans": self.loans.address,
            "benefits": self.benefits.address,
        }


def deploy_system(settings: Optional[Settings] = None, chain: Optional[Chain] = None) -> Deployment:
    """Deploy and wire every ledger, leaves first."""
    settings = settings or Settings()
    chain = chain or Chain(timestamp=settings.genesis_timestamp)
    owner = settings.owner.lower()

    token = StableToken(chain, owner)
    oracle = ScoreOracle(
        chain,
        owner,
        max_score_age=settings.max_score_age,
        min_publish_interval=settings.min_publish_interval,
        history_enabled=settings.score_history_enabled,
    )
    points = PointLedger(
        chain,
        owner,
        oracle=oracle,
        min_points=settings.eligibility_min_points,
        min_score=settings.eligibility_min_score,
    )
    registry = AchievementRegistry(chain, owner, point_ledger=points)
    points.set_registry(registry.address, sender=owner)

    loans = LoanManager(
        chain,
        owner,
        token=token,
        point_ledger=points,
        oracle=oracle,
        registry=registry,
        min_reputation_points=settings.loan_min_reputation_points,
        min_credit_score=settings.loan_min_credit_score,
        min_loan=settings.min_loan,
        max_loan=settings.max_loan,
        large_loan_threshold=settings.large_loan_threshold,
    )
    benefits = BenefitDisbursement(chain, owner, token=token, point_ledger=points, registry=registry)

    registry.add_issuer(owner, sender=owner)
    registry.add_issuer(loans.address, sender=owner)
    registry.add_issuer(benefits.address, sender=owner)

    deployment = Deployment(
        chain=chain,
        owner=owner,
        token=token,
        oracle=oracle,
        points=points,
        registry=registry,
        loans=loans,
        benefits=benefits,
    )
    logger.info("Deployed reputation ledgers for %s: %s", owner, deployment.addresses())
    return deployment
