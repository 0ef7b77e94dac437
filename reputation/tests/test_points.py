"""
Unit Tests for the Point Ledger

Tests cover:
1. One-way trust: only the bound registry adds points
2. One-time registry binding
3. Dual-criteria eligibility (view and logged variants)
4. Threshold administration
"""

import pytest

from reputation.chain import ZERO_ADDRESS, Chain
from reputation.errors import (
    AlreadyConfiguredError,
    InvalidContractError,
    InvalidInputError,
    NoScoreError,
    OracleUnavailableError,
    OutOfRangeError,
    StaleScoreError,
    UnauthorizedError,
)
from reputation.models import PointLevel, ScoreType
from reputation.oracle import ScoreOracle
from reputation.points import PointLedger

from .support import BORROWER, GENESIS, ISSUER, NGO, OWNER, STRANGER, give_points, deploy


class TestOneWayTrust:
    """Tests for the registry-only write path."""

    @pytest.mark.parametrize("caller", [OWNER, BORROWER, ISSUER, STRANGER, NGO])
    def test_only_registry_may_add_points(self, caller):
        system = deploy()

        with pytest.raises(UnauthorizedError):
            system.points.add_points(BORROWER, 100, sender=caller)

        assert system.points.get_total_points(BORROWER) == 0

    def test_other_contracts_cannot_add_points(self):
        system = deploy()
        for contract in (system.loans, system.oracle, system.benefits, system.token):
            with pytest.raises(UnauthorizedError):
                system.points.add_points(BORROWER, 100, sender=contract.address)

    def test_registry_binding_is_set_once(self):
        system = deploy()
        with pytest.raises(AlreadyConfiguredError):
            system.points.set_registry(STRANGER, sender=OWNER)
        assert system.points.registry == system.registry.address

    def test_unbound_ledger_rejects_everyone(self):
        ledger = PointLedger(Chain(timestamp=GENESIS), OWNER)
        with pytest.raises(UnauthorizedError):
            ledger.add_points(BORROWER, 100, sender=OWNER)

    def test_points_added_event_carries_total(self):
        system = deploy()
        give_points(system, BORROWER, PointLevel.LEVEL_C_MAJOR, PointLevel.LEVEL_D_MINOR)

        events = system.chain.get_events("PointsAdded")
        assert [e.args["new_total"] for e in events] == [300, 400]
        assert system.points.get_batch_points([BORROWER, STRANGER]) == [400, 0]


class TestEligibility:
    """Tests for the conjunctive points + score check."""

    def test_both_criteria_met(self):
        """Test points=600 >= 500 and score=750 >= 700 is eligible."""
        system = deploy()
        give_points(system, BORROWER, PointLevel.LEVEL_C_MAJOR, PointLevel.LEVEL_C_MAJOR)
        system.oracle.publish_score(ScoreType.UBI_ELIGIBILITY, 750, sender=BORROWER)

        result = system.points.check_eligibility(BORROWER)

        assert result.points == 600
        assert result.score == 750
        assert result.score_valid is True
        assert result.eligible is True

    def test_sufficient_points_missing_score(self):
        system = deploy()
        give_points(system, BORROWER, PointLevel.LEVEL_A_PRESTIGE)

        assert system.points.check_eligibility(BORROWER).eligible is False
        with pytest.raises(NoScoreError):
            system.points.check_eligibility_and_log(BORROWER, sender=STRANGER)

    def test_sufficient_points_stale_score(self):
        system = deploy()
        give_points(system, BORROWER, PointLevel.LEVEL_A_PRESTIGE)
        system.oracle.publish_score(ScoreType.UBI_ELIGIBILITY, 900, sender=BORROWER)
        system.chain.advance(system.oracle.max_score_age + 1)

        result = system.points.check_eligibility(BORROWER)
        assert result.score_valid is False
        assert result.eligible is False

        with pytest.raises(StaleScoreError):
            system.points.check_eligibility_and_log(BORROWER, sender=STRANGER)

    def test_fresh_score_insufficient_points(self):
        system = deploy()
        give_points(system, BORROWER, PointLevel.LEVEL_C_MAJOR)
        system.oracle.publish_score(ScoreType.UBI_ELIGIBILITY, 1000, sender=BORROWER)

        assert system.points.check_eligibility(BORROWER).eligible is False

    def test_financial_score_does_not_count(self):
        system = deploy()
        give_points(system, BORROWER, PointLevel.LEVEL_A_PRESTIGE)
        system.oracle.publish_score(ScoreType.FINANCIAL_RISK, 1000, sender=BORROWER)

        assert system.points.check_eligibility(BORROWER).eligible is False

    def test_logged_variant_emits_event(self):
        system = deploy()
        give_points(system, BORROWER, PointLevel.LEVEL_B_HARMONY)
        system.oracle.publish_score(ScoreType.UBI_ELIGIBILITY, 700, sender=BORROWER)

        result = system.points.check_eligibility_and_log(BORROWER, sender=STRANGER)

        assert result.eligible is True
        checked = system.chain.get_events("EligibilityChecked")
        assert checked[-1].args == {"holder": BORROWER, "points": 750, "score": 700, "eligible": True}
        assert system.chain.get_events("ScoreQueried")[-1].args["querier"] == system.points.address

    def test_view_variant_has_no_side_effects(self):
        system = deploy()
        give_points(system, BORROWER, PointLevel.LEVEL_B_HARMONY)
        system.oracle.publish_score(ScoreType.UBI_ELIGIBILITY, 700, sender=BORROWER)
        event_count = len(system.chain.events)

        system.points.check_eligibility(BORROWER)

        assert len(system.chain.events) == event_count
        assert system.oracle.query_count == 0

    def test_oracle_unavailable(self):
        ledger = PointLedger(Chain(timestamp=GENESIS), OWNER)
        with pytest.raises(OracleUnavailableError):
            ledger.check_eligibility(BORROWER)


class TestOracleBinding:
    """Tests for re-pointing the score oracle."""

    @pytest.mark.parametrize("target", [None, STRANGER, ZERO_ADDRESS, "not-an-address"])
    def test_failed_set_oracle_changes_nothing(self, target):
        system = deploy()
        give_points(system, BORROWER, PointLevel.LEVEL_C_MAJOR, PointLevel.LEVEL_C_MAJOR)
        system.oracle.publish_score(ScoreType.UBI_ELIGIBILITY, 750, sender=BORROWER)

        with pytest.raises(InvalidInputError):
            system.points.set_oracle(target, sender=OWNER)

        assert system.points.oracle is system.oracle
        assert system.points.check_eligibility(BORROWER).eligible is True

    def test_non_oracle_contract_rejected(self):
        system = deploy()
        with pytest.raises(InvalidContractError):
            system.points.set_oracle(system.loans.address, sender=OWNER)
        assert system.points.oracle is system.oracle

    def test_repoint_oracle(self):
        system = deploy()
        replacement = ScoreOracle(system.chain, OWNER)

        system.points.set_oracle(replacement.address, sender=OWNER)

        assert system.points.oracle is replacement
        event = system.chain.get_events("OracleUpdated")[-1]
        assert event.args == {"old_oracle": system.oracle.address, "new_oracle": replacement.address}

    def test_only_owner_sets_oracle(self):
        system = deploy()
        replacement = ScoreOracle(system.chain, OWNER)
        with pytest.raises(UnauthorizedError):
            system.points.set_oracle(replacement.address, sender=STRANGER)


class TestThresholds:
    """Tests for owner-adjustable thresholds."""

    def test_set_thresholds(self):
        system = deploy()
        system.points.set_thresholds(100, 300, sender=OWNER)

        assert system.points.min_points == 100
        assert system.points.min_score == 300
        event = system.chain.get_events("ThresholdsUpdated")[-1]
        assert event.args["old_min_points"] == 500
        assert event.args["new_min_score"] == 300

    def test_min_score_bounded(self):
        system = deploy()
        with pytest.raises(OutOfRangeError):
            system.points.set_thresholds(100, 1001, sender=OWNER)

    def test_only_owner_sets_thresholds(self):
        system = deploy()
        with pytest.raises(UnauthorizedError):
            system.points.set_thresholds(0, 0, sender=STRANGER)
