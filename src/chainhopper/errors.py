"""Exception taxonomy shared across the rebalancing pipeline."""


class ChainhopperError(Exception):
    """Base class for all chainhopper errors."""


class InvalidInputError(ChainhopperError, ValueError):
    """Raised for malformed identity or allocation input. Fails the whole run."""


class StrategyValidationError(ChainhopperError):
    """Raised when a strategy violates the structural action invariants."""


class OperationCancelledError(ChainhopperError):
    """Raised when aggregation or quoting is abandoned before completing."""
