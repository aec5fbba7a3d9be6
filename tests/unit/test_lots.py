"""Tests for lot sizing."""

from folio.auction import get_lot
from folio.models import MAX_RATE

SUPPLY = 10**21
START_PRICE = 102 * 10**37


class TestGetLot:
    def test_buy_side_binds(self, sample_pair):
        lot = get_lot(sample_pair, START_PRICE, SUPPLY, 10**9, 0)
        assert lot.min_sell_balance == 0
        assert lot.sell_available == 10**9
        assert lot.max_buy_balance == 10**21
        assert lot.buy_available == 10**21
        assert lot.sell_available_from_buy == 980392156
        assert lot.lot == 980392156

    def test_unconstrained_buy_lot_is_sell_available(self, sample_pair):
        """Sell limit 0 with an unbounded buy limit frees the whole balance."""
        pair = sample_pair.model_copy(update={"buy_limit": MAX_RATE})
        lot = get_lot(pair, START_PRICE, SUPPLY, 123_456_789, 0)
        assert lot.sell_available == 123_456_789
        assert lot.sell_available_from_buy == -1
        assert lot.lot == 123_456_789

    def test_sell_floor_rounds_up(self, sample_pair):
        pair = sample_pair.model_copy(update={"sell_limit": 1})
        lot = get_lot(pair, START_PRICE, 1, 5, 0)
        assert lot.min_sell_balance == 1
        assert lot.sell_available == 4

    def test_buy_ceiling_rounds_down(self, sample_pair):
        pair = sample_pair.model_copy(update={"buy_limit": 1})
        lot = get_lot(pair, START_PRICE, 1, 5, 0)
        assert lot.max_buy_balance == 0
        assert lot.lot == 0

    def test_balance_below_floor(self, sample_pair):
        pair = sample_pair.model_copy(update={"sell_limit": 10**15})  # 1 USDC per share
        lot = get_lot(pair, START_PRICE, SUPPLY, 999 * 10**6, 0)
        assert lot.min_sell_balance == 1000 * 10**6
        assert lot.sell_available == 0
        assert lot.lot == 0

    def test_buy_balance_at_ceiling(self, sample_pair):
        lot = get_lot(sample_pair, START_PRICE, SUPPLY, 10**9, 10**21)
        assert lot.buy_available == 0
        assert lot.lot == 0

    def test_zero_supply(self, sample_pair):
        lot = get_lot(sample_pair, START_PRICE, 0, 10**9, 0)
        assert lot.lot == 0

    def test_lot_grows_as_price_falls(self, sample_pair):
        high = get_lot(sample_pair, START_PRICE, SUPPLY, 10**9, 0)
        low = get_lot(sample_pair, 98 * 10**37, SUPPLY, 10**9, 0)
        assert low.lot >= high.lot
        assert low.lot == 10**9
