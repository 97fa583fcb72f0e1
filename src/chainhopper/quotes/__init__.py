"""Quote and routing providers."""

from chainhopper.quotes.base import QuoteError, QuoteProvider
from chainhopper.quotes.pipeline import QuotePipeline

__all__ = ["QuoteError", "QuotePipeline", "QuoteProvider"]
