"""Range checks for rebalance parameters and launcher overrides."""

from folio.errors import (
    InvalidLimitsError,
    InvalidPricesError,
    InvalidTokensError,
    InvalidWeightsError,
)
from folio.models import (
    MAX_LIMIT,
    MAX_TOKEN_PRICE,
    MAX_TOKEN_PRICE_RANGE,
    MAX_WEIGHT,
    PriceControl,
    PriceRange,
    RebalanceLimits,
    TokenRebalanceParams,
    WeightRange,
)


def validate_limits(limits: RebalanceLimits) -> None:
    if not (0 < limits.low <= limits.spot <= limits.high <= MAX_LIMIT):
        raise InvalidLimitsError(
            f"limits must satisfy 0 < low <= spot <= high <= {MAX_LIMIT}: {limits}"
        )


def validate_weight(token: str, weight: WeightRange) -> None:
    if not (weight.low <= weight.spot <= weight.high <= MAX_WEIGHT):
        raise InvalidWeightsError(
            f"{token}: weights must satisfy low <= spot <= high <= {MAX_WEIGHT}: {weight}"
        )


def validate_price(token: str, price: PriceRange) -> None:
    if price.low == 0 or price.low > price.high or price.high > MAX_TOKEN_PRICE:
        raise InvalidPricesError(
            f"{token}: prices must satisfy 0 < low <= high <= {MAX_TOKEN_PRICE}: {price}"
        )
    if price.high > MAX_TOKEN_PRICE_RANGE * price.low:
        raise InvalidPricesError(
            f"{token}: price range exceeds {MAX_TOKEN_PRICE_RANGE}x: {price}"
        )


def validate_tokens(tokens: list[str], minimum: int = 2) -> None:
    if len(tokens) < minimum:
        raise InvalidTokensError(f"need at least {minimum} tokens, got {len(tokens)}")
    if len(set(tokens)) != len(tokens):
        raise InvalidTokensError(f"duplicate tokens: {tokens}")
    if any(not token for token in tokens):
        raise InvalidTokensError("empty token identifier")


def validate_token_params(params: list[TokenRebalanceParams]) -> None:
    validate_tokens([p.token for p in params])
    for p in params:
        validate_weight(p.token, p.weight)
        validate_price(p.token, p.price)


def validate_limits_narrowing(current: RebalanceLimits, new: RebalanceLimits) -> None:
    """New limits must be well formed and lie inside the current range."""
    validate_limits(new)
    if new.low < current.low or new.high > current.high:
        raise InvalidLimitsError(
            f"limits [{new.low}, {new.high}] not within [{current.low}, {current.high}]"
        )


def validate_weight_narrowing(token: str, current: WeightRange, new: WeightRange) -> None:
    validate_weight(token, new)
    if new.low < current.low or new.high > current.high:
        raise InvalidWeightsError(
            f"{token}: weights [{new.low}, {new.high}] not within [{current.low}, {current.high}]"
        )


def validate_price_override(
    token: str,
    current: PriceRange,
    new: PriceRange,
    price_control: PriceControl,
) -> None:
    """Check a launcher price override against the configured trust level.

    NONE: prices are fixed by governance.
    PARTIAL: a sub-range of the governance range; only governance may set a point.
    FULL: any sub-range, including a single point (atomic swap).
    """
    if price_control == PriceControl.NONE:
        if new != current:
            raise InvalidPricesError(f"{token}: price overrides are disabled")
        return

    validate_price(token, new)
    if new.low < current.low or new.high > current.high:
        raise InvalidPricesError(
            f"{token}: prices [{new.low}, {new.high}] not within [{current.low}, {current.high}]"
        )
    if price_control == PriceControl.PARTIAL and new.low == new.high and new != current:
        raise InvalidPricesError(f"{token}: collapsing the price range needs FULL price control")
