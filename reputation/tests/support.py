from reputation.chain import Chain, Contract, external
from reputation.config import Settings
from reputation.deploy import Deployment, deploy_system
from reputation.models import PointLevel, ScoreType, TaskType
from reputation.token import StableToken

GENESIS = 1_700_000_000
DAY = 24 * 60 * 60
UNIT = 10 ** 18

OWNER = "0x4ddc43b3539744c80327f2f1839e93b1693e5dbd"
BORROWER = "0xbe1900d7202b28c946f0418c351f03a62858b22a"
ISSUER = "0x1111111111111111111111111111111111111111"
STRANGER = "0x2222222222222222222222222222222222222222"
NGO = "0x3333333333333333333333333333333333333333"


def deploy(**overrides) -> Deployment:
    return deploy_system(Settings(genesis_timestamp=GENESIS, **overrides))


def give_points(system: Deployment, holder: str, *levels: PointLevel) -> None:
    for level in levels:
        system.registry.issue(holder, TaskType.IDENTITY_VERIFIED_KYC, level, "KYC Verified", sender=OWNER)


def make_creditworthy(system: Deployment, borrower: str = BORROWER, score: int = 750) -> None:
    give_points(system, borrower, PointLevel.LEVEL_C_MAJOR)
    system.oracle.publish_score(ScoreType.FINANCIAL_RISK, score, sender=borrower)


def fund_pool(system: Deployment, amount: int) -> None:
    system.token.mint(system.loans.address, amount, sender=OWNER)


class ReentrantToken(StableToken):
    """Stablecoin whose transfer hook records loan state and tries to call back in."""

    def __init__(self, chain: Chain, owner: str):
        super().__init__(chain, owner)
        self.loans = None
        self.reenter = None
        self.observed = []
        self.reentry_errors = []

    def _after_token_transfer(self, sender, to, amount):
        if self.loans is None or self.reenter is None:
            return
        borrower = to if to != self.loans.address else sender
        self.observed.append(dict(self.loans.storage.loans.get(borrower, {})))
        try:
            self.reenter(self.loans, borrower)
        except Exception as e:
            self.reentry_errors.append(e)


class RevertingRegistry(Contract):
    """Registry stand-in whose every mint fails."""

    @external
    def issue(self, holder, task_type, point_level, title, metadata_ref=""):
        self.emit("MintAttempted", holder=holder)
        raise RuntimeError("registry unavailable")
