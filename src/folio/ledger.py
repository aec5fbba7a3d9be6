"""Token balance bookkeeping for a folio and its counterparties."""

from folio.errors import InsufficientFundsError, MathError


class TokenLedger:
    """View over a ``token -> holder -> amount`` mapping.

    The mapping is owned by the caller (normally a ``FolioState``); the
    ledger only mutates it in place.
    """

    def __init__(self, balances: dict[str, dict[str, int]]):
        self._balances = balances

    def balance_of(self, token: str, holder: str) -> int:
        return self._balances.get(token, {}).get(holder, 0)

    def credit(self, token: str, holder: str, amount: int) -> None:
        if amount < 0:
            raise MathError(f"negative credit: {amount}")
        holders = self._balances.setdefault(token, {})
        holders[holder] = holders.get(holder, 0) + amount

    def debit(self, token: str, holder: str, amount: int) -> None:
        if amount < 0:
            raise MathError(f"negative debit: {amount}")
        current = self.balance_of(token, holder)
        if current < amount:
            raise InsufficientFundsError(
                f"{holder} holds {current} {token}, needs {amount}"
            )
        self._balances[token][holder] = current - amount

    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> None:
        self.debit(token, sender, amount)
        self.credit(token, recipient, amount)
