class TokenRiskError(Exception):
    """Base error for the risk pipeline."""


class UnresolvableTokenError(TokenRiskError):
    """A ticker could not be mapped to a unit and no unit was given."""

    def __init__(self, ticker):
        self.ticker = ticker
        super().__init__(f"Cannot resolve token identifier: {ticker!r}")


class PersistenceError(TokenRiskError):
    """A Store write failed."""
