"""Abstract base class for wallet name resolution."""

from abc import ABC, abstractmethod
from typing import Optional

import structlog
from pydantic import BaseModel

from chainhopper.models import is_valid_address

logger = structlog.get_logger(__name__)


class ResolvedWallet(BaseModel):
    address: str
    display_name: Optional[str] = None


class NameResolver(ABC):
    """Interface for mapping human-readable wallet names to addresses."""

    @abstractmethod
    def resolve(self, name: str) -> Optional[str]:
        """Return the address registered for name, or None."""
        ...

    @abstractmethod
    def reverse_resolve(self, address: str) -> Optional[str]:
        """Return the primary name for address, or None."""
        ...


def resolve_wallet(value: str, resolver: Optional[NameResolver] = None) -> Optional[ResolvedWallet]:
    """Turn user input (address or name) into an address plus display name.

    A well-formed address is returned as-is, reverse-resolved for a display
    name when a resolver is available. Anything else is looked up as a name.
    Returns None when a name cannot be resolved.
    """
    value = value.strip()
    if is_valid_address(value):
        name = resolver.reverse_resolve(value) if resolver else None
        return ResolvedWallet(address=value, display_name=name)

    if resolver is None:
        logger.warning("naming.no_resolver", name=value)
        return None

    address = resolver.resolve(value)
    if not address or not is_valid_address(address):
        logger.warning("naming.unresolved", name=value)
        return None

    logger.info("naming.resolved", name=value, address=address)
    return ResolvedWallet(address=address, display_name=value)
