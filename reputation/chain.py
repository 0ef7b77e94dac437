"""
In-process ledger substrate.

Gives every contract the execution guarantees of the chain it is deployed to:
- a single monotonic ledger clock, either pinned or following wall time
- atomic calls: any failure restores the storage of every contract the call
  touched, and the event log
- msg.sender tracking across nested cross-contract calls
- a per-contract reentrancy guard
"""

import copy
import functools
import hashlib
import logging
import re
import time
from typing import Any, Callable, Optional

from .errors import (
    InvalidAddressError,
    InvalidRecipientError,
    ReentrancyError,
    UnauthorizedError,
)
from .models import Event

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40
ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
SECONDS_PER_DAY = 24 * 60 * 60


def to_address(value: str) -> str:
    if not isinstance(value, str) or not ADDRESS_PATTERN.match(value):
        raise InvalidAddressError(f"Malformed address: {value!r}")
    return value.lower()


def to_recipient(value: str) -> str:
    """Normalise an address that will receive something; the null address is refused."""
    if not isinstance(value, str) or not ADDRESS_PATTERN.match(value):
        raise InvalidRecipientError(f"Malformed recipient address: {value!r}")
    address = value.lower()
    if address == ZERO_ADDRESS:
        raise InvalidRecipientError("Recipient cannot be the null address")
    return address


class _Frame:
    __slots__ = ("sender", "event_count", "storages")

    def __init__(self, sender: str, event_count: int):
        self.sender = sender
        self.event_count = event_count
        # address -> storage as it was before this frame first touched the contract
        self.storages: dict[str, Any] = {}


class Chain:
    """
    Ledger clock, contract registry and call frames.

    A chain built with a fixed ``timestamp`` only moves when advanced. Without
    one it follows ``clock`` (wall time by default), never moving backwards,
    plus whatever has been added with ``advance``.
    """

    def __init__(self, timestamp: Optional[int] = None, clock: Callable[[], float] = time.time):
        self.clock: Optional[Callable[[], float]] = clock if timestamp is None else None
        self.timestamp = int(clock()) if timestamp is None else int(timestamp)
        self.contracts: dict[str, "Contract"] = {}
        self.events: list[Event] = []
        self.reverted_events: list[Event] = []
        self._frames: list[_Frame] = []
        self._offset = 0
        self._nonce = 0

    @property
    def pinned(self) -> bool:
        return self.clock is None

    @property
    def now(self) -> int:
        if self.clock is not None:
            self.timestamp = max(self.timestamp, int(self.clock()) + self._offset)
        return self.timestamp

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("Ledger time cannot move backwards")
        current = self.now
        self._offset += int(seconds)
        self.timestamp = current + int(seconds)
        return self.timestamp

    def advance_days(self, days: int) -> int:
        return self.advance(days * SECONDS_PER_DAY)

    @property
    def msg_sender(self) -> str:
        if not self._frames:
            raise RuntimeError("msg_sender read outside of a call")
        return self._frames[-1].sender

    def register(self, contract: "Contract") -> str:
        self._nonce += 1
        seed = f"{type(contract).__name__}:{self._nonce}:{id(self)}".encode()
        address = "0x" + hashlib.sha256(seed).hexdigest()[:40]
        self.contracts[address] = contract
        return address

    def call(self, contract: "Contract", sender: str, method: Callable, *args, **kwargs) -> Any:
        frame = _Frame(to_address(sender), len(self.events))
        self._frames.append(frame)
        try:
            self._journal(contract)
            return method(contract, *args, **kwargs)
        except Exception as e:
            self._restore(frame)
            logger.debug("Reverted %s.%s from %s: %s", type(contract).__name__, method.__name__, frame.sender, e)
            raise
        finally:
            self._frames.pop()

    def emit(self, contract: "Contract", name: str, /, **args) -> Event:
        event = Event(
            index=len(self.events),
            contract=contract.address,
            name=name,
            args=args,
            timestamp=self.now,
        )
        self.events.append(event)
        return event

    def get_events(self, name: Optional[str] = None, contract: Optional[str] = None) -> list[Event]:
        return [
            e for e in self.events
            if (name is None or e.name == name) and (contract is None or e.contract == contract)
        ]

    def get_reverted_events(self, name: Optional[str] = None) -> list[Event]:
        return [e for e in self.reverted_events if name is None or e.name == name]

    def _journal(self, contract: "Contract") -> None:
        """Save the contract's storage in every open frame that has not touched it yet."""
        saved = None
        for frame in self._frames:
            if contract.address not in frame.storages:
                if saved is None:
                    saved = copy.deepcopy(contract.storage)
                frame.storages[contract.address] = saved

    def _restore(self, frame: _Frame) -> None:
        # Saved copies can be shared with enclosing frames, so restore a fresh copy
        for address, storage in frame.storages.items():
            self.contracts[address].storage = copy.deepcopy(storage)
        self.reverted_events.extend(self.events[frame.event_count:])
        del self.events[frame.event_count:]


class ContractStorage:
    def __init__(self, owner: str):
        self.owner = owner


def external(method: Callable) -> Callable:
    """Mark a state-changing entry point; callers must pass ``sender=``."""

    @functools.wraps(method)
    def wrapper(self, *args, sender: str, **kwargs):
        return self.chain.call(self, sender, method, *args, **kwargs)

    return wrapper


def non_reentrant(method: Callable) -> Callable:
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        if self._entered:
            raise ReentrancyError(f"Reentrant call to {type(self).__name__}.{method.__name__}")
        self._entered = True
        try:
            return method(self, *args, **kwargs)
        finally:
            self._entered = False

    return wrapper


class Contract:
    storage_class = ContractStorage

    def __init__(self, chain: Chain, owner: str, **storage_kwargs):
        self.chain = chain
        self.storage = self.storage_class(to_address(owner), **storage_kwargs)
        self._entered = False
        self.address = chain.register(self)

    @property
    def owner(self) -> str:
        return self.storage.owner

    @property
    def msg_sender(self) -> str:
        return self.chain.msg_sender

    @property
    def now(self) -> int:
        return self.chain.now

    def emit(self, name: str, /, **args) -> Event:
        return self.chain.emit(self, name, **args)

    def _only_owner(self) -> None:
        if self.msg_sender != self.storage.owner:
            raise UnauthorizedError(f"{self.msg_sender} is not the owner of {type(self).__name__}")

    @external
    def transfer_ownership(self, new_owner: str) -> None:
        self._only_owner()
        new_owner = to_recipient(new_owner)
        previous = self.storage.owner
        self.storage.owner = new_owner
        self.emit("OwnershipTransferred", previous_owner=previous, new_owner=new_owner)
