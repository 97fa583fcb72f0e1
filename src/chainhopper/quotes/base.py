"""Abstract base class for routing / quote providers."""

from abc import ABC, abstractmethod
from typing import Optional

from chainhopper.models import Quote, RebalanceAction


class QuoteProvider(ABC):
    """Interface for pricing and routing swap/bridge actions."""

    @abstractmethod
    def quote(self, action: RebalanceAction, from_address: str) -> Quote:
        """Request an execution quote for one action.

        Raises:
            QuoteError: On network failure, no route, or rejected parameters.
        """
        ...

    @abstractmethod
    def transfer_status(
        self,
        tx_hash: str,
        from_chain: Optional[int] = None,
        to_chain: Optional[int] = None,
    ) -> dict:
        """Status of a submitted transfer ({"status": ..., "substatus": ...})."""
        ...

    @abstractmethod
    def supported_chains(self) -> list[dict]:
        """Chains the routing service can route between."""
        ...


class QuoteError(Exception):
    """Raised when a quote or status request fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
