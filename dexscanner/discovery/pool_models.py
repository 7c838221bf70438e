"""
Pool model normalizer.

Each supported pool model is one entry in POOL_MODEL_SPECS holding the
GraphQL query shape for its indexer and the function that turns a raw
indexer row into a price. Adding a model means adding one enum member and
one spec entry.

Price conventions:
- token0 price is expressed in token1 units, scaled by 10^(decimals0 - decimals1)
- concentrated liquidity: price = (sqrtPriceX96 / 2^96)^2
- constant product: price = reserve1 / reserve0 on raw integer reserves
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, DecimalException, InvalidOperation, localcontext
from typing import Any, Callable, Dict, Mapping, Optional

from ..errors import DataQualityError
from ..types import DiscoveryPolicy, PoolModel, PoolPrice
from .v3_math import Q192, get_sqrt_ratio_at_tick

logger = logging.getLogger(__name__)

# Enough digits for (2^160)^2 with room for an 18-decimal scale
PRICE_PRECISION = 80

# ERC-20 decimals is a uint8
MAX_TOKEN_DECIMALS = 255


def check_token_decimals(decimals0: int, decimals1: int, pool_address: Optional[str] = None) -> None:
    """
    Validate token decimals before any power-of-ten scaling.

    Raises:
        DataQualityError: If either value is outside 0..255
    """
    for decimals in (decimals0, decimals1):
        if not 0 <= int(decimals) <= MAX_TOKEN_DECIMALS:
            raise DataQualityError(f"Token decimals out of range 0..{MAX_TOKEN_DECIMALS}: {decimals}", pool_address)


def decimal_scale(decimals0: int, decimals1: int) -> Decimal:
    """
    Exact 10^(decimals0 - decimals1).

    scaleb only moves the exponent, so no digits are lost for any
    token decimal configuration.

    Raises:
        DataQualityError: If either value is outside 0..255
    """
    check_token_decimals(decimals0, decimals1)
    return Decimal(1).scaleb(int(decimals0) - int(decimals1))


def price_from_sqrt_price_x96(sqrt_price_x96: int, decimals0: int, decimals1: int) -> Decimal:
    """
    Calculate token0 price in token1 units from sqrtPriceX96.

    Args:
        sqrt_price_x96: Square root price in Q64.96
        decimals0: Decimals of token0
        decimals1: Decimals of token1

    Returns:
        Decimal-adjusted token0 price

    Raises:
        DataQualityError: If the square root price is not positive
    """
    if sqrt_price_x96 <= 0:
        raise DataQualityError(f"sqrtPriceX96 must be positive, got {sqrt_price_x96}")

    with localcontext() as ctx:
        ctx.prec = PRICE_PRECISION
        ratio = Decimal(sqrt_price_x96 * sqrt_price_x96) / Decimal(Q192)
        return ratio * decimal_scale(decimals0, decimals1)


def price_from_reserves(reserve0: int, reserve1: int, decimals0: int, decimals1: int) -> Decimal:
    """
    Calculate token0 price in token1 units from raw pair reserves.

    Args:
        reserve0: Raw reserve of token0
        reserve1: Raw reserve of token1
        decimals0: Decimals of token0
        decimals1: Decimals of token1

    Returns:
        Decimal-adjusted token0 price

    Raises:
        DataQualityError: If reserve0 is zero or a reserve is negative
    """
    if reserve0 <= 0:
        raise DataQualityError(f"reserve0 must be positive, got {reserve0}")
    if reserve1 < 0:
        raise DataQualityError(f"reserve1 must be non-negative, got {reserve1}")

    with localcontext() as ctx:
        ctx.prec = PRICE_PRECISION
        return Decimal(reserve1) / Decimal(reserve0) * decimal_scale(decimals0, decimals1)


def derive_pool_price(pool_address: str, token0_price: Decimal, timestamp: int) -> PoolPrice:
    """Build a reciprocal-consistent price snapshot."""
    if token0_price <= 0:
        raise DataQualityError(f"Derived price must be positive, got {token0_price}", pool_address)

    with localcontext() as ctx:
        ctx.prec = PRICE_PRECISION
        token1_price = Decimal(1) / token0_price

    return PoolPrice(
        pool_address=pool_address,
        token0_price=float(token0_price),
        token1_price=float(token1_price),
        timestamp=int(timestamp),
    )


def _parse_decimal(row: Mapping[str, Any], field: str) -> Decimal:
    value = row.get(field)
    if value is None or value == "":
        raise DataQualityError(f"Missing field '{field}'", row.get("id"))
    try:
        parsed = Decimal(str(value))
    except InvalidOperation:
        raise DataQualityError(f"Field '{field}' is not numeric: {value!r}", row.get("id"))
    if not parsed.is_finite():
        raise DataQualityError(f"Field '{field}' is not finite: {value!r}", row.get("id"))
    return parsed


def _parse_int(row: Mapping[str, Any], field: str) -> int:
    parsed = _parse_decimal(row, field)
    if parsed != parsed.to_integral_value():
        raise DataQualityError(f"Field '{field}' is not an integer: {row.get(field)!r}", row.get("id"))
    return int(parsed)


def _concentrated_liquidity_price(row: Mapping[str, Any], decimals0: int, decimals1: int) -> Decimal:
    """sqrtPrice is the raw Q64.96 value; fall back to tick when it is absent."""
    if row.get("sqrtPrice") in (None, "") and row.get("tick") not in (None, ""):
        tick = _parse_int(row, "tick")
        try:
            sqrt_price_x96 = get_sqrt_ratio_at_tick(tick)
        except ValueError as e:
            raise DataQualityError(str(e), row.get("id"))
    else:
        sqrt_price_x96 = _parse_int(row, "sqrtPrice")
    return price_from_sqrt_price_x96(sqrt_price_x96, decimals0, decimals1)


def _constant_product_price(row: Mapping[str, Any], decimals0: int, decimals1: int) -> Decimal:
    """Indexer reserves are token amounts; convert back to raw units first."""
    reserve0 = _parse_decimal(row, "reserve0")
    reserve1 = _parse_decimal(row, "reserve1")
    with localcontext() as ctx:
        ctx.prec = PRICE_PRECISION
        raw0 = int(reserve0.scaleb(decimals0).to_integral_value())
        raw1 = int(reserve1.scaleb(decimals1).to_integral_value())
    try:
        return price_from_reserves(raw0, raw1, decimals0, decimals1)
    except DataQualityError as e:
        raise DataQualityError(str(e), row.get("id"))


_TOKEN_FIELDS = "token0 { id symbol decimals }\n    token1 { id symbol decimals }"


def _build_query(operation: str, collection: str, liquidity_field: str, fields: str) -> str:
    return f"""
query {operation}($first: Int!, $minLiquidityUSD: BigDecimal!) {{
  {collection}(
    first: $first
    orderBy: {liquidity_field}
    orderDirection: desc
    where: {{ {liquidity_field}_gte: $minLiquidityUSD }}
  ) {{
    id
    {_TOKEN_FIELDS}
    {fields}
  }}
}}
"""


@dataclass(frozen=True)
class PoolModelSpec:
    """
    Query shape and price derivation for one pool model.

    Attributes:
        model: Pool model this spec covers
        collection: GraphQL collection holding the pools
        liquidity_field: USD liquidity field used for ordering and filtering
        query: Full GraphQL query text
        fee_field: Fee tier field, None when the model has no fee tiers
        extract_price: Row -> token0 price, given token decimals
    """

    model: PoolModel
    collection: str
    liquidity_field: str
    query: str
    fee_field: Optional[str]
    extract_price: Callable[[Mapping[str, Any], int, int], Decimal]

    def build_variables(self, policy: DiscoveryPolicy) -> Dict[str, Any]:
        """GraphQL variables for a discovery policy."""
        return {
            "first": policy.max_pools_per_protocol,
            "minLiquidityUSD": str(policy.min_liquidity_usd),
        }


POOL_MODEL_SPECS: Dict[PoolModel, PoolModelSpec] = {
    PoolModel.CONCENTRATED_LIQUIDITY: PoolModelSpec(
        model=PoolModel.CONCENTRATED_LIQUIDITY,
        collection="pools",
        liquidity_field="totalValueLockedUSD",
        query=_build_query(
            "GetV3Pools",
            "pools",
            "totalValueLockedUSD",
            "feeTier\n    liquidity\n    sqrtPrice\n    tick\n    totalValueLockedUSD\n    volumeUSD",
        ),
        fee_field="feeTier",
        extract_price=_concentrated_liquidity_price,
    ),
    PoolModel.CONSTANT_PRODUCT: PoolModelSpec(
        model=PoolModel.CONSTANT_PRODUCT,
        collection="pairs",
        liquidity_field="reserveUSD",
        query=_build_query(
            "GetV2Pairs",
            "pairs",
            "reserveUSD",
            "reserve0\n    reserve1\n    reserveUSD\n    volumeUSD",
        ),
        fee_field=None,
        extract_price=_constant_product_price,
    ),
}


def get_pool_model_spec(model: PoolModel) -> PoolModelSpec:
    """Get the spec for a pool model."""
    try:
        return POOL_MODEL_SPECS[model]
    except KeyError:
        raise ValueError(f"Unsupported pool model: {model}")


def derive_row_price(
    model: PoolModel,
    row: Mapping[str, Any],
    decimals0: int,
    decimals1: int,
    timestamp: int,
) -> PoolPrice:
    """
    Derive a price snapshot from an indexer row.

    Raises:
        DataQualityError: If the row's price fields are absent or unusable
    """
    spec = get_pool_model_spec(model)
    pool_address = str(row.get("id", "")).lower()
    check_token_decimals(decimals0, decimals1, pool_address)
    try:
        token0_price = spec.extract_price(row, decimals0, decimals1)
        return derive_pool_price(pool_address, token0_price, timestamp)
    except DecimalException as e:
        raise DataQualityError(f"Price arithmetic failed: {e!r}", pool_address)
