import logging
from typing import Optional

from .chain import Contract, ContractStorage, ZERO_ADDRESS, external, non_reentrant, to_address, to_recipient
from .errors import (
    AlreadyAcknowledgedError,
    NonTransferableError,
    NotAuthorizedError,
    NotFoundError,
    UnauthorizedError,
)
from .models import AchievementRecord, AuditSummary, PointLevel, TaskType

logger = logging.getLogger(__name__)

AID_ACKNOWLEDGEMENT_LEVEL = PointLevel.LEVEL_C_MAJOR


class RecordNotFoundError(NotFoundError):
    pass


class RegistryStorage(ContractStorage):
    def __init__(self, owner: str):
        super().__init__(owner)
        self.next_id = 1
        self.records: dict[int, dict] = {}
        self.holder_records: dict[str, list[int]] = {}
        self.issuers: set[str] = set()
        self.aid_acknowledged: set[str] = set()


class AchievementRegistry(Contract):
    """
    Non-transferable achievement records (soulbound tokens).

    Every mint pushes the tier's point value into the point ledger in the
    same call; if that push fails the mint fails with it. Burning removes the
    record but never the points it earned.
    """

    storage_class = RegistryStorage

    def __init__(self, chain, owner: str, point_ledger):
        super().__init__(chain, owner)
        self.point_ledger = point_ledger

    # Issuer management

    @external
    def add_issuer(self, issuer: str) -> None:
        self._only_owner()
        issuer = to_recipient(issuer)
        self.storage.issuers.add(issuer)
        self.emit("IssuerAdded", issuer=issuer)

    @external
    def remove_issuer(self, issuer: str) -> None:
        self._only_owner()
        issuer = to_address(issuer)
        self.storage.issuers.discard(issuer)
        self.emit("IssuerRemoved", issuer=issuer)

    def is_issuer(self, account: str) -> bool:
        return to_address(account) in self.storage.issuers

    # Minting and burning

    @external
    @non_reentrant
    def issue(
        self,
        holder: str,
        task_type: TaskType,
        point_level: PointLevel,
        title: str,
        metadata_ref: str = "",
    ) -> int:
        if self.msg_sender not in self.storage.issuers:
            raise UnauthorizedError(f"{self.msg_sender} is not an authorized issuer")
        holder = to_recipient(holder)
        return self._mint(holder, TaskType(task_type), PointLevel(point_level), title, metadata_ref)

    @external
    @non_reentrant
    def acknowledge_aid(self, title: str = "NGO Aid Received") -> int:
        holder = self.msg_sender
        if holder in self.storage.aid_acknowledged:
            raise AlreadyAcknowledgedError(f"{holder} has already acknowledged aid receipt")
        self.storage.aid_acknowledged.add(holder)
        return self._mint(holder, TaskType.AID_DISBURSEMENT_RECEIVED, AID_ACKNOWLEDGEMENT_LEVEL, title, "")

    @external
    def burn(self, token_id: int) -> None:
        record = self._get_record(token_id)
        holder = record["holder"]
        if self.msg_sender not in (holder, self.storage.owner):
            raise NotAuthorizedError(f"{self.msg_sender} may not burn record {token_id}")

        self._check_transfer(holder, ZERO_ADDRESS)
        del self.storage.records[token_id]
        self.storage.holder_records[holder].remove(token_id)
        # Points already aggregated in the point ledger stay where they are
        self.emit("Transfer", sender=holder, recipient=ZERO_ADDRESS, token_id=token_id)
        self.emit("AchievementBurned", token_id=token_id, holder=holder, burned_by=self.msg_sender)
        logger.info("Burned record %s of %s", token_id, holder)

    @external
    def transfer_from(self, holder: str, recipient: str, token_id: int) -> None:
        self._get_record(token_id)
        self._check_transfer(to_address(holder), to_address(recipient))
        raise NonTransferableError(f"Record {token_id} can only leave its holder through burn")

    def _check_transfer(self, sender: str, recipient: str) -> None:
        if sender != ZERO_ADDRESS and recipient != ZERO_ADDRESS:
            raise NonTransferableError("Achievement records are soulbound and cannot be transferred")

    def _mint(self, holder: str, task_type: TaskType, point_level: PointLevel, title: str, metadata_ref: str) -> int:
        self._check_transfer(ZERO_ADDRESS, holder)
        token_id = self.storage.next_id
        self.storage.next_id += 1

        self.storage.records[token_id] = {
            "id": token_id,
            "holder": holder,
            "task_type": task_type,
            "point_level": point_level,
            "title": title,
            "metadata_ref": metadata_ref,
            "issuer": self.msg_sender,
            "issued_at": self.now,
        }
        self.storage.holder_records.setdefault(holder, []).append(token_id)

        self.point_ledger.add_points(holder, point_level.points, sender=self.address)

        self.emit("Transfer", sender=ZERO_ADDRESS, recipient=holder, token_id=token_id)
        self.emit(
            "AchievementIssued",
            token_id=token_id,
            holder=holder,
            issuer=self.msg_sender,
            task_type=task_type.value,
            point_level=point_level.value,
            points=point_level.points,
            title=title,
        )
        logger.info("Issued record %s (%s, %s) to %s", token_id, task_type.value, point_level.value, holder)
        return token_id

    # Reads

    def _get_record(self, token_id: int) -> dict:
        record = self.storage.records.get(token_id)
        if not record:
            raise RecordNotFoundError(f"Achievement record {token_id} not found")
        return record

    def get_data(self, token_id: int) -> AchievementRecord:
        return AchievementRecord(**self._get_record(token_id))

    def get_by_holder(self, holder: str) -> list[AchievementRecord]:
        ids = self.storage.holder_records.get(to_address(holder), [])
        return [AchievementRecord(**self.storage.records[i]) for i in ids]

    def owner_of(self, token_id: int) -> str:
        return self._get_record(token_id)["holder"]

    def balance_of(self, holder: str) -> int:
        return len(self.storage.holder_records.get(to_address(holder), []))

    @property
    def total_supply(self) -> int:
        return len(self.storage.records)

    def has_acknowledged_aid(self, holder: str) -> bool:
        return to_address(holder) in self.storage.aid_acknowledged

    def count_by_task_type(self, task_type: TaskType) -> int:
        return sum(1 for r in self.storage.records.values() if r["task_type"] == TaskType(task_type))

    def get_audit_log(self, issuer: Optional[str] = None, task_type: Optional[TaskType] = None) -> AuditSummary:
        records = [AchievementRecord(**r) for r in self.storage.records.values()]
        if issuer:
            issuer = to_address(issuer)
            records = [r for r in records if r.issuer == issuer]
        if task_type:
            records = [r for r in records if r.task_type == TaskType(task_type)]
        records.sort(key=lambda r: (r.issued_at, r.id), reverse=True)

        return AuditSummary(
            total_records=len(records),
            aid_acknowledgements=sum(1 for r in records if r.task_type == TaskType.AID_DISBURSEMENT_RECEIVED),
            records=records,
        )
