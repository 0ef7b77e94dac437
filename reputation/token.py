import logging

from .chain import Contract, ContractStorage, ZERO_ADDRESS, external, to_address, to_recipient
from .errors import InsufficientAllowanceError, InsufficientBalanceError, OutOfRangeError

logger = logging.getLogger(__name__)


class TokenStorage(ContractStorage):
    def __init__(self, owner: str):
        super().__init__(owner)
        self.balances: dict[str, int] = {}
        self.allowances: dict[tuple[str, str], int] = {}
        self.total_supply = 0


class StableToken(Contract):
    """Fungible stablecoin used for loan principal, repayments and benefits."""

    storage_class = TokenStorage

    def __init__(self, chain, owner: str, name: str = "Celo Dollar", symbol: str = "cUSD", decimals: int = 18):
        super().__init__(chain, owner)
        self.name = name
        self.symbol = symbol
        self.decimals = decimals

    def units(self, amount: int) -> int:
        return amount * 10 ** self.decimals

    def balance_of(self, account: str) -> int:
        return self.storage.balances.get(to_address(account), 0)

    def allowance(self, holder: str, spender: str) -> int:
        return self.storage.allowances.get((to_address(holder), to_address(spender)), 0)

    @property
    def total_supply(self) -> int:
        return self.storage.total_supply

    @external
    def mint(self, to: str, amount: int) -> None:
        self._only_owner()
        to = to_recipient(to)
        if amount <= 0:
            raise OutOfRangeError("Mint amount must be positive")
        self.storage.balances[to] = self.storage.balances.get(to, 0) + amount
        self.storage.total_supply += amount
        self.emit("Transfer", sender=ZERO_ADDRESS, recipient=to, amount=amount)
        logger.info("Minted %s %s to %s", amount, self.symbol, to)

    @external
    def transfer(self, to: str, amount: int) -> bool:
        self._move(self.msg_sender, to_recipient(to), amount)
        return True

    @external
    def approve(self, spender: str, amount: int) -> bool:
        spender = to_recipient(spender)
        if amount < 0:
            raise OutOfRangeError("Allowance cannot be negative")
        self.storage.allowances[(self.msg_sender, spender)] = amount
        self.emit("Approval", holder=self.msg_sender, spender=spender, amount=amount)
        return True

    @external
    def transfer_from(self, holder: str, to: str, amount: int) -> bool:
        holder = to_address(holder)
        to = to_recipient(to)
        key = (holder, self.msg_sender)
        allowed = self.storage.allowances.get(key, 0)
        if allowed < amount:
            raise InsufficientAllowanceError(
                f"Allowance {allowed} of {self.msg_sender} over {holder} is below {amount}"
            )
        self.storage.allowances[key] = allowed - amount
        self._move(holder, to, amount)
        return True

    def _move(self, sender: str, to: str, amount: int) -> None:
        if amount < 0:
            raise OutOfRangeError("Transfer amount cannot be negative")
        balance = self.storage.balances.get(sender, 0)
        if balance < amount:
            raise InsufficientBalanceError(f"Balance {balance} of {sender} is below {amount}")
        self.storage.balances[sender] = balance - amount
        self.storage.balances[to] = self.storage.balances.get(to, 0) + amount
        self.emit("Transfer", sender=sender, recipient=to, amount=amount)
        self._after_token_transfer(sender, to, amount)

    def _after_token_transfer(self, sender: str, to: str, amount: int) -> None:
        """Recipient callback point; tokens with transfer hooks override this."""
