"""
Unit Tests for the ledger substrate

Tests cover:
1. Address validation
2. Atomic rollback of storage and events
3. msg.sender across nested calls
4. Reentrancy guard
5. Ownership
"""

import pytest

from reputation.chain import ZERO_ADDRESS, Chain, Contract, ContractStorage, external, non_reentrant, to_address
from reputation.errors import InvalidAddressError, LedgerError, ReentrancyError, UnauthorizedError

from .support import OWNER, STRANGER


class CounterStorage(ContractStorage):
    def __init__(self, owner):
        super().__init__(owner)
        self.count = 0
        self.callers = []


class Counter(Contract):
    storage_class = CounterStorage

    def __init__(self, chain, owner, peer=None):
        super().__init__(chain, owner)
        self.peer = peer

    @external
    def bump(self, fail: bool = False) -> int:
        self.storage.count += 1
        self.storage.callers.append(self.msg_sender)
        self.emit("Bumped", count=self.storage.count)
        if fail:
            raise LedgerError("boom")
        return self.storage.count

    @external
    def bump_peer(self, fail: bool = False) -> int:
        self.storage.count += 1
        return self.peer.bump(fail, sender=self.address)

    @external
    def bump_then_fail(self) -> None:
        self.storage.count += 1
        self.peer.bump(sender=self.address)
        raise LedgerError("outer failed")

    @external
    @non_reentrant
    def guarded(self) -> None:
        self.guarded(sender=self.msg_sender)


class TestAddresses:
    """Tests for address normalisation."""

    def test_addresses_are_lowercased(self):
        assert to_address("0xABCDEFabcdef0000000000000000000000000000") == "0xabcdefabcdef0000000000000000000000000000"

    @pytest.mark.parametrize("bad", ["", "0x123", "abcdefabcdef00000000000000000000000000000000", None])
    def test_malformed_addresses_rejected(self, bad):
        with pytest.raises(InvalidAddressError):
            to_address(bad)

    def test_contract_addresses_are_unique(self):
        chain = Chain(timestamp=0)
        a, b = Counter(chain, OWNER), Counter(chain, OWNER)
        assert a.address != b.address
        assert to_address(a.address) == a.address


class TestAtomicCalls:
    """Tests for rollback on failure."""

    def test_failed_call_restores_storage_and_events(self):
        chain = Chain(timestamp=0)
        counter = Counter(chain, OWNER)
        counter.bump(sender=STRANGER)

        with pytest.raises(LedgerError):
            counter.bump(fail=True, sender=STRANGER)

        assert counter.storage.count == 1
        assert len(chain.get_events("Bumped")) == 1
        assert len(chain.get_reverted_events("Bumped")) == 1

    def test_untouched_contracts_are_not_copied(self):
        chain = Chain(timestamp=0)
        counter = Counter(chain, OWNER)
        bystander = Counter(chain, OWNER)
        bystander_storage = bystander.storage

        counter.bump(sender=STRANGER)
        with pytest.raises(LedgerError):
            counter.bump(fail=True, sender=STRANGER)

        assert bystander.storage is bystander_storage
        assert counter.storage.count == 1

    def test_successful_nested_call_rolls_back_with_caller(self):
        chain = Chain(timestamp=0)
        inner = Counter(chain, OWNER)
        outer = Counter(chain, OWNER, peer=inner)

        with pytest.raises(LedgerError):
            outer.bump_then_fail(sender=STRANGER)

        assert inner.storage.count == 0
        assert inner.storage.callers == []
        assert outer.storage.count == 0

    def test_failed_nested_call_rolls_back_the_caller_too(self):
        chain = Chain(timestamp=0)
        inner = Counter(chain, OWNER)
        outer = Counter(chain, OWNER, peer=inner)

        with pytest.raises(LedgerError):
            outer.bump_peer(fail=True, sender=STRANGER)

        assert outer.storage.count == 0
        assert inner.storage.count == 0

    def test_nested_calls_see_caller_contract_as_sender(self):
        chain = Chain(timestamp=0)
        inner = Counter(chain, OWNER)
        outer = Counter(chain, OWNER, peer=inner)

        outer.bump_peer(sender=STRANGER)

        assert inner.storage.callers == [outer.address]

    def test_msg_sender_outside_call_is_an_error(self):
        chain = Chain(timestamp=0)
        with pytest.raises(RuntimeError):
            chain.msg_sender


class TestReentrancyGuard:
    """Tests for the per-contract guard."""

    def test_reentry_fails_and_guard_resets(self):
        chain = Chain(timestamp=0)
        counter = Counter(chain, OWNER)

        with pytest.raises(ReentrancyError):
            counter.guarded(sender=STRANGER)

        assert counter._entered is False


class TestClockAndOwnership:
    """Tests for ledger time and ownership transfer."""

    def test_time_only_moves_forward(self):
        chain = Chain(timestamp=100)
        assert chain.advance(50) == 150
        assert chain.advance_days(1) == 150 + 86400
        with pytest.raises(ValueError):
            chain.advance(-1)

    def test_pinned_chain_ignores_wall_clock(self):
        chain = Chain(timestamp=100, clock=lambda: 10 ** 9)
        assert chain.pinned
        assert chain.now == 100

    def test_unpinned_chain_follows_clock(self):
        wall = [1_000]
        chain = Chain(clock=lambda: wall[0])
        assert chain.now == 1_000

        wall[0] = 5_000
        assert chain.now == 5_000

        chain.advance(100)
        wall[0] = 6_000
        assert chain.now == 6_100

    def test_unpinned_chain_never_moves_backwards(self):
        wall = [5_000]
        chain = Chain(clock=lambda: wall[0])
        assert chain.now == 5_000

        wall[0] = 4_000
        assert chain.now == 5_000

    def test_events_carry_current_time(self):
        wall = [1_000]
        chain = Chain(clock=lambda: wall[0])
        counter = Counter(chain, OWNER)

        wall[0] = 2_000
        counter.bump(sender=STRANGER)

        assert chain.get_events("Bumped")[0].timestamp == 2_000

    def test_transfer_ownership(self):
        chain = Chain(timestamp=0)
        counter = Counter(chain, OWNER)

        with pytest.raises(UnauthorizedError):
            counter.transfer_ownership(STRANGER, sender=STRANGER)

        counter.transfer_ownership(STRANGER, sender=OWNER)
        assert counter.owner == STRANGER
        assert chain.get_events("OwnershipTransferred")[0].args["new_owner"] == STRANGER

    def test_ownership_cannot_go_to_null_address(self):
        chain = Chain(timestamp=0)
        counter = Counter(chain, OWNER)
        with pytest.raises(LedgerError):
            counter.transfer_ownership(ZERO_ADDRESS, sender=OWNER)
