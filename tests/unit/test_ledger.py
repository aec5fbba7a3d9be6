"""Tests for TokenLedger."""

import pytest

from folio.errors import InsufficientFundsError, MathError
from folio.ledger import TokenLedger


class TestTokenLedger:
    def test_unknown_balances_are_zero(self):
        assert TokenLedger({}).balance_of("USDC", "folio") == 0

    def test_credit_mutates_backing_mapping(self):
        balances = {}
        ledger = TokenLedger(balances)
        ledger.credit("USDC", "folio", 100)
        ledger.credit("USDC", "folio", 50)
        assert balances == {"USDC": {"folio": 150}}

    def test_transfer(self):
        ledger = TokenLedger({"USDC": {"folio": 100}})
        ledger.transfer("USDC", "folio", "bidder", 40)
        assert ledger.balance_of("USDC", "folio") == 60
        assert ledger.balance_of("USDC", "bidder") == 40

    def test_overdraw(self):
        ledger = TokenLedger({"USDC": {"folio": 100}})
        with pytest.raises(InsufficientFundsError):
            ledger.debit("USDC", "folio", 101)
        assert ledger.balance_of("USDC", "folio") == 100

    def test_negative_amounts(self):
        ledger = TokenLedger({"USDC": {"folio": 100}})
        with pytest.raises(MathError):
            ledger.credit("USDC", "folio", -1)
        with pytest.raises(MathError):
            ledger.debit("USDC", "folio", -1)
