"""
Unit Tests for the Achievement Registry

Tests cover:
1. Issuance and the synchronous point push
2. Issuer authorization
3. Burning (points are kept)
4. Non-transferability
5. Holder-triggered aid acknowledgement
6. Audit views
"""

import pytest

from reputation.chain import ZERO_ADDRESS
from reputation.errors import (
    AlreadyAcknowledgedError,
    InvalidRecipientError,
    NonTransferableError,
    NotAuthorizedError,
    NotFoundError,
    UnauthorizedError,
)
from reputation.models import PointLevel, TaskType
from reputation.registry import AchievementRegistry

from .support import BORROWER, GENESIS, ISSUER, OWNER, STRANGER, deploy


class TestIssue:
    """Tests for issuing achievement records."""

    def test_issue_success(self):
        """Test a record is stored and its points pushed to the ledger."""
        system = deploy()

        token_id = system.registry.issue(
            BORROWER, TaskType.IDENTITY_VERIFIED_KYC, PointLevel.LEVEL_C_MAJOR, "KYC Verified", "ipfs://kyc",
            sender=OWNER,
        )

        record = system.registry.get_data(token_id)
        assert token_id == 1
        assert record.holder == BORROWER
        assert record.issuer == OWNER
        assert record.issued_at == GENESIS
        assert record.metadata_ref == "ipfs://kyc"
        assert record.point_value == 300
        assert system.points.get_total_points(BORROWER) == 300

        issued = system.chain.get_events("AchievementIssued")
        assert issued[-1].args["points"] == 300

    def test_ids_increase_monotonically(self):
        system = deploy()
        ids = [
            system.registry.issue(BORROWER, TaskType.SOCIAL_MENTORSHIP, level, "Mentor", sender=OWNER)
            for level in PointLevel
        ]
        assert ids == [1, 2, 3, 4]
        assert system.points.get_total_points(BORROWER) == 100 + 300 + 750 + 1500

    def test_unauthorized_issuer_fails(self):
        """Test that an address outside the issuer set cannot mint."""
        system = deploy()

        with pytest.raises(UnauthorizedError):
            system.registry.issue(BORROWER, TaskType.IDENTITY_VERIFIED_KYC, PointLevel.LEVEL_A_PRESTIGE, "x",
                                  sender=STRANGER)

        assert system.registry.total_supply == 0
        assert system.points.get_total_points(BORROWER) == 0

    def test_null_holder_fails(self):
        system = deploy()
        with pytest.raises(InvalidRecipientError):
            system.registry.issue(ZERO_ADDRESS, TaskType.IDENTITY_VERIFIED_KYC, PointLevel.LEVEL_D_MINOR, "x",
                                  sender=OWNER)

    def test_issue_fails_when_point_push_fails(self):
        """Test a registry the point ledger does not trust cannot mint at all."""
        system = deploy()
        rogue = AchievementRegistry(system.chain, OWNER, point_ledger=system.points)
        rogue.add_issuer(ISSUER, sender=OWNER)

        with pytest.raises(UnauthorizedError):
            rogue.issue(BORROWER, TaskType.IDENTITY_VERIFIED_KYC, PointLevel.LEVEL_C_MAJOR, "x", sender=ISSUER)

        assert rogue.total_supply == 0
        assert rogue.storage.next_id == 1
        assert system.points.get_total_points(BORROWER) == 0


class TestIssuerManagement:
    """Tests for the owner-managed issuer set."""

    def test_add_and_remove_issuer(self):
        system = deploy()
        system.registry.add_issuer(ISSUER, sender=OWNER)
        assert system.registry.is_issuer(ISSUER)

        system.registry.issue(BORROWER, TaskType.FINANCIAL_SAVINGS_GOAL, PointLevel.LEVEL_D_MINOR, "Saver",
                              sender=ISSUER)

        system.registry.remove_issuer(ISSUER, sender=OWNER)
        with pytest.raises(UnauthorizedError):
            system.registry.issue(BORROWER, TaskType.FINANCIAL_SAVINGS_GOAL, PointLevel.LEVEL_D_MINOR, "Saver",
                                  sender=ISSUER)

    def test_only_owner_manages_issuers(self):
        system = deploy()
        with pytest.raises(UnauthorizedError):
            system.registry.add_issuer(STRANGER, sender=STRANGER)


class TestBurn:
    """Tests for burning records."""

    def test_burn_keeps_points(self):
        """Test reputation never decreases, even after every record is burned."""
        system = deploy()
        ids = [
            system.registry.issue(BORROWER, TaskType.COMMUNITY_VOLUNTEERISM, PointLevel.LEVEL_B_HARMONY, "Volunteer",
                                  sender=OWNER)
            for _ in range(3)
        ]

        for token_id in ids:
            system.registry.burn(token_id, sender=BORROWER)

        assert system.registry.get_by_holder(BORROWER) == []
        assert system.registry.balance_of(BORROWER) == 0
        assert system.points.get_total_points(BORROWER) == 3 * 750

    def test_owner_can_burn(self):
        system = deploy()
        token_id = system.registry.issue(BORROWER, TaskType.SOCIAL_EDUCATION_CERT, PointLevel.LEVEL_D_MINOR, "Cert",
                                         sender=OWNER)
        system.registry.burn(token_id, sender=OWNER)

        with pytest.raises(NotFoundError):
            system.registry.get_data(token_id)

    def test_stranger_cannot_burn(self):
        system = deploy()
        token_id = system.registry.issue(BORROWER, TaskType.SOCIAL_EDUCATION_CERT, PointLevel.LEVEL_D_MINOR, "Cert",
                                         sender=OWNER)
        with pytest.raises(NotAuthorizedError):
            system.registry.burn(token_id, sender=STRANGER)

    def test_burn_unknown_record(self):
        system = deploy()
        with pytest.raises(NotFoundError):
            system.registry.burn(99, sender=OWNER)


class TestNonTransferable:
    """Tests that records never move between holders."""

    @pytest.mark.parametrize("recipient", [STRANGER, ISSUER, OWNER])
    def test_transfer_between_holders_fails(self, recipient):
        system = deploy()
        token_id = system.registry.issue(BORROWER, TaskType.IDENTITY_VERIFIED_KYC, PointLevel.LEVEL_C_MAJOR, "KYC",
                                         sender=OWNER)

        with pytest.raises(NonTransferableError):
            system.registry.transfer_from(BORROWER, recipient, token_id, sender=BORROWER)

        assert system.registry.owner_of(token_id) == BORROWER


class TestAidAcknowledgement:
    """Tests for the holder-triggered aid record."""

    def test_acknowledge_once(self):
        system = deploy()

        token_id = system.registry.acknowledge_aid("NGO Aid 1 Acknowledged", sender=BORROWER)

        record = system.registry.get_data(token_id)
        assert record.task_type == TaskType.AID_DISBURSEMENT_RECEIVED
        assert record.point_level == PointLevel.LEVEL_C_MAJOR
        assert record.issuer == BORROWER
        assert system.registry.has_acknowledged_aid(BORROWER)
        assert system.points.get_total_points(BORROWER) == 300

        with pytest.raises(AlreadyAcknowledgedError):
            system.registry.acknowledge_aid(sender=BORROWER)


class TestAuditViews:
    """Tests for the issuer audit log."""

    def test_audit_log_newest_first(self):
        system = deploy()
        system.registry.issue(BORROWER, TaskType.IDENTITY_VERIFIED_KYC, PointLevel.LEVEL_C_MAJOR, "KYC", sender=OWNER)
        system.chain.advance(60)
        system.registry.acknowledge_aid(sender=STRANGER)
        system.chain.advance(60)
        system.registry.issue(STRANGER, TaskType.SOCIAL_MENTORSHIP, PointLevel.LEVEL_B_HARMONY, "Mentor",
                              sender=OWNER)

        audit = system.registry.get_audit_log()
        assert [r.id for r in audit.records] == [3, 2, 1]
        assert audit.aid_acknowledgements == 1

        by_owner = system.registry.get_audit_log(issuer=OWNER)
        assert by_owner.total_records == 2
        assert system.registry.count_by_task_type(TaskType.SOCIAL_MENTORSHIP) == 1
