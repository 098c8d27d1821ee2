"""Custom exceptions for the up/down bot."""


class UpdownError(Exception):
    """Base exception for up/down bot errors."""
    pass


class FeedError(UpdownError):
    """Raised when a streaming connection fails or is lost."""
    pass


class StaleFeedError(FeedError):
    """Raised when a stream goes silent past its liveness window."""
    pass


class MarketDataError(UpdownError):
    """Raised when market data cannot be fetched or parsed."""
    pass


class ConfigurationError(UpdownError):
    """Raised when configuration is invalid."""
    pass


class OrderPlacementError(UpdownError):
    """Raised when an order operation fails."""
    pass


class TradingDisabledError(OrderPlacementError):
    """Raised when order placement is attempted without signing material."""
    pass
