"""
Token whitelist filtering for discovered pools.
"""

import logging
from typing import Collection, FrozenSet, Iterable, Iterator, List, Mapping, Union

from ..types import CachedPool

logger = logging.getLogger(__name__)


class TokenWhitelist:
    """
    Set of allowed token addresses.

    Addresses are stored lower-case, so membership is case-insensitive.
    """

    def __init__(self, addresses: Iterable[str] = ()):
        self._addresses: FrozenSet[str] = frozenset(a.lower() for a in addresses if a)

    @classmethod
    def from_symbol_map(cls, tokens: Mapping[str, str]) -> "TokenWhitelist":
        """Build from a symbol -> address mapping; duplicate addresses collapse."""
        return cls(tokens.values())

    @classmethod
    def from_addresses(cls, addresses: Iterable[str]) -> "TokenWhitelist":
        return cls(addresses)

    def allows(self, pool: CachedPool) -> bool:
        """Both tokens of the pool are whitelisted."""
        return pool.token0.address.lower() in self._addresses and pool.token1.address.lower() in self._addresses

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and address.lower() in self._addresses

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._addresses))

    def __len__(self) -> int:
        return len(self._addresses)

    def __bool__(self) -> bool:
        return bool(self._addresses)

    def __repr__(self) -> str:
        return f"TokenWhitelist({len(self)} tokens)"


def filter_pools_by_token_whitelist(
    pools: Iterable[CachedPool], whitelist: Union[TokenWhitelist, Collection[str]]
) -> List[CachedPool]:
    """
    Keep pools whose token0 and token1 are both whitelisted.

    An empty whitelist disables filtering and returns every pool. The
    input is never modified and the relative order is preserved. Any
    collection of addresses is accepted in place of a TokenWhitelist.
    """
    pools = list(pools)
    if not isinstance(whitelist, TokenWhitelist):
        whitelist = TokenWhitelist(whitelist)
    if not whitelist:
        return pools

    filtered = [pool for pool in pools if whitelist.allows(pool)]
    logger.info(f"Whitelist kept {len(filtered)}/{len(pools)} pools")
    return filtered
