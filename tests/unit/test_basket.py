"""Tests for basket accounting helpers."""

from decimal import Decimal

import pytest

from folio.errors import PlannerError
from folio.models import LimitRange, Trade
from folio.planner import (
    get_basket_native,
    get_basket_portion,
    get_basket_tracking,
    get_current_basket,
    get_dust_amount,
    get_share_pricing,
    get_trades,
    to_decimals,
)

D18 = 10**18


def make_trade(sell, buy, sell_limit, buy_limit, start_price, end_price) -> Trade:
    return Trade(
        sell=sell,
        buy=buy,
        sell_limit=LimitRange(low=sell_limit, spot=sell_limit, high=sell_limit),
        buy_limit=LimitRange(low=buy_limit, spot=buy_limit, high=buy_limit),
        start_price=start_price,
        end_price=end_price,
    )


def assert_approx(actual: int, expected: int, precision: Decimal = Decimal("0.001")):
    assert abs(actual - expected) <= precision * expected, f"{actual} != {expected}"


class TestDustAmount:
    @pytest.mark.parametrize(
        "decimals,price,dtf_price,expected",
        [
            (18, 1, 1, 10**21),
            (6, 1, 1, 10**9),
            (8, 1, 1, 10**11),
            (21, 1, 1, 10**24),
            (18, 1e-3, 1, 10**24),
            (6, 1e-3, 1, 10**12),
            (8, 1e-3, 1, 10**14),
            (21, 1e-3, 1, 10**27),
            (18, 1e3, 1, 10**18),
            (6, 1e3, 1, 10**6),
            (8, 1e3, 1, 10**8),
            (21, 1e3, 1, 10**21),
            (18, 1, 1e-3, 10**18),
            (6, 1, 1e-3, 10**6),
            (8, 1, 1e-3, 10**8),
            (21, 1, 1e-3, 10**21),
            (18, 1, 1e3, 10**24),
            (6, 1, 1e3, 10**12),
            (8, 1, 1e3, 10**14),
            (21, 1, 1e3, 10**27),
        ],
    )
    def test_dust_amount(self, decimals, price, dtf_price, expected):
        assert get_dust_amount(decimals, price, dtf_price) == expected


class TestToDecimals:
    def test_tiny_price_accepted(self):
        assert to_decimals([0.000000000001, 1, 2]) == [Decimal("1e-12"), Decimal(1), Decimal(2)]

    def test_zero_price_rejected(self):
        with pytest.raises(PlannerError, match="a price is zero"):
            to_decimals([0, 1, 2])


class TestCurrentBasket:
    def test_single_holding(self):
        assert get_current_basket([10**9, 0, 0], [6, 18, 6], [1, 1, 1]) == [D18, 0, 0]

    def test_value_weighted(self):
        basket = get_current_basket([250 * 10**6, 25 * 10**16], [6, 18], [1, 3000])
        assert basket == [D18 // 4, 3 * D18 // 4]

    def test_empty_basket(self):
        with pytest.raises(PlannerError):
            get_current_basket([0, 0], [6, 18], [1, 1])

    def test_share_pricing(self):
        value, share_price = get_share_pricing(10**21, [500 * 10**6, 500 * 10**18], [6, 18], [1, 1])
        assert value == 1000
        assert share_price == 1

    def test_share_pricing_needs_supply(self):
        with pytest.raises(PlannerError):
            get_share_pricing(0, [1], [6], [1])

    def test_basket_portion(self):
        assert get_basket_portion(5 * 10**26, 18, 1, 1) == Decimal("0.5")
        assert get_basket_portion(5 * 10**14, 6, 1, 1) == Decimal("0.5")
        assert get_basket_portion(25 * 10**21, 18, 3000, 1) == Decimal("0.075")


class TestBasketTracking:
    def test_split(self):
        trades = [
            make_trade("USDC", "DAI", 0, 5 * 10**26, 101 * 10**37, 99 * 10**37),
            make_trade("USDC", "USDT", 0, 5 * 10**14, 101 * 10**25, 99 * 10**25),
        ]
        basket = get_basket_tracking(trades, ["USDC", "DAI", "USDT"], [6, 18, 6], [1, 1, 1])
        assert basket == [0, D18 // 2, D18 // 2]

    def test_join(self):
        trades = [
            make_trade("USDT", "USDC", 0, 10**15, 101 * 10**25, 99 * 10**25),
            make_trade("DAI", "USDC", 0, 10**15, 101 * 10**13, 99 * 10**13),
        ]
        basket = get_basket_tracking(trades, ["USDC", "DAI", "USDT"], [6, 18, 6], [1, 1, 1])
        assert basket == [D18, 0, 0]

    def test_reweight_volatile(self):
        trades = [make_trade("WETH", "USDC", 833 * 10**20, 750 * 10**12, 303 * 10**16, 297 * 10**16)]
        basket = get_basket_tracking(trades, ["USDC", "WETH"], [6, 18], [1, 3000])
        assert_approx(basket[0], 3 * D18 // 4)
        assert_approx(basket[1], D18 // 4)

    def test_ratios_must_be_uniform(self):
        trades = [
            make_trade("USDC", "DAI", 0, 5 * 10**26, 1, 1),
            make_trade("USDT", "DAI", 0, 6 * 10**26, 1, 1),
        ]
        with pytest.raises(PlannerError, match="uniform"):
            get_basket_tracking(trades, ["USDC", "DAI", "USDT"], [6, 18, 6], [1, 1, 1])

    def test_token_missing(self):
        trades = [make_trade("USDC", "DAI", 0, 5 * 10**26, 1, 1)]
        with pytest.raises(PlannerError, match="missing"):
            get_basket_tracking(trades, ["USDC", "DAI", "USDT"], [6, 18, 6], [1, 1, 1])


class TestBasketNative:
    SUPPLY = 10**21

    def plan(self, tokens, current, target, eject_fully=False):
        n = len(tokens)
        return get_trades(
            self.SUPPLY, tokens, [18] * n, current, target, [1] * n, [0.01] * n, 1, eject_fully=eject_fully
        )

    def test_single_trade_reaches_target(self):
        trades = self.plan(["A", "B"], [D18, 0], [D18 // 4, 3 * D18 // 4])
        basket = get_basket_native(self.SUPPLY, trades, ["A", "B"], [18, 18], [D18, 0], [1, 1], 1)
        assert basket == [D18 // 4, 3 * D18 // 4]

    def test_ejected_token_fully_sold(self):
        trades = self.plan(["A", "B"], [D18, 0], [0, D18], eject_fully=True)
        basket = get_basket_native(self.SUPPLY, trades, ["A", "B"], [18, 18], [D18, 0], [1, 1], 1)
        assert basket == [0, D18]

    def test_unbounded_trades_share_the_remainder(self):
        """Two unbounded buys of one ejected token split what is left evenly."""
        tokens = ["A", "B", "C"]
        trades = self.plan(tokens, [D18, 0, 0], [0, D18 // 2, D18 // 2], eject_fully=True)
        assert [t.buy for t in trades] == ["B", "C"]

        basket = get_basket_native(self.SUPPLY, trades, tokens, [18] * 3, [D18, 0, 0], [1] * 3, 1)
        assert basket == [0, D18 // 2, D18 // 2]

    def test_market_price_outside_trade_range(self):
        trades = self.plan(["A", "B"], [D18, 0], [0, D18])
        with pytest.raises(PlannerError, match="out of range"):
            get_basket_native(self.SUPPLY, trades, ["A", "B"], [18, 18], [D18, 0], [2, 1], 1)
