"""
In-memory protocol registry.

Keeps protocol descriptors in registration order; discovery iterates
protocols in exactly this order.
"""

import logging
from typing import Dict, Iterable, Iterator, List, Optional

from ..types import PoolModel, ProtocolDescriptor

logger = logging.getLogger(__name__)


class ProtocolRegistry:
    """Ordered set of protocol descriptors keyed by protocol id."""

    def __init__(self, descriptors: Optional[Iterable[ProtocolDescriptor]] = None):
        self._protocols: Dict[str, ProtocolDescriptor] = {}
        for descriptor in descriptors or ():
            self.register(descriptor)

    def register(self, descriptor: ProtocolDescriptor) -> None:
        """
        Add a descriptor.

        Raises:
            ValueError: If a descriptor with the same id is already registered
        """
        if descriptor.id in self._protocols:
            raise ValueError(f"Protocol already registered: {descriptor.id}")
        self._protocols[descriptor.id] = descriptor

    def get(self, protocol_id: str) -> ProtocolDescriptor:
        """Get descriptor by id."""
        if protocol_id not in self._protocols:
            raise ValueError(f"Unknown protocol: {protocol_id}")
        return self._protocols[protocol_id]

    def enabled(self) -> List[ProtocolDescriptor]:
        """Descriptors that are enabled and have a resolved endpoint."""
        return [p for p in self._protocols.values() if p.is_queryable]

    def by_model(self, pool_model: PoolModel) -> List[ProtocolDescriptor]:
        """Descriptors using a given pool model."""
        return [p for p in self._protocols.values() if p.pool_model == pool_model]

    @property
    def ids(self) -> List[str]:
        return list(self._protocols)

    def __contains__(self, protocol_id: object) -> bool:
        return protocol_id in self._protocols

    def __iter__(self) -> Iterator[ProtocolDescriptor]:
        return iter(list(self._protocols.values()))

    def __len__(self) -> int:
        return len(self._protocols)

    def __repr__(self) -> str:
        return f"ProtocolRegistry(protocols={self.ids})"
