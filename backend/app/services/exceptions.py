# backend/app/services/exceptions.py
"""
Domain exceptions raised by the service layer.

Services never raise HTTPException; app/main.py maps each class below to a
status code and the standard error envelope.

    ServiceError                      500
    ├── ValidationError               400
    ├── NotFoundError                 404
    │   └── AccountNotFoundError
    ├── MarketDataError               502
    │   ├── ProviderUnavailableError  503  (retried by the provider)
    │   ├── RateLimitError            429  (retried by the provider)
    │   ├── TickerNotFoundError       404
    │   └── PriceUnavailableError     404  (no fetch and no cache entry)
    ├── ImportFormatError             400
    └── AuthenticationError           401
        ├── InvalidCredentialsError
        └── TokenExpiredError

A malformed CSV row is not an exception: it becomes a "Row {n}: ..."
string on the ImportResult.
"""


class ServiceError(Exception):
    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class ValidationError(ServiceError):
    """
    A request that passed schema validation but breaks a business rule
    (inverted date range, non-positive exchange rate).
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


# =============================================================================
# LOOKUPS
# =============================================================================


class NotFoundError(ServiceError):
    def __init__(
            self,
            message: str,
            resource_type: str | None = None,
            resource_id: int | str | None = None,
    ) -> None:
        super().__init__(message)
        self.resource_type = resource_type
        self.resource_id = resource_id


class AccountNotFoundError(NotFoundError):
    def __init__(self, account_id: int) -> None:
        super().__init__(f"Account {account_id} not found", resource_type="Account", resource_id=account_id)
        self.account_id = account_id


# =============================================================================
# MARKET DATA
# =============================================================================


class MarketDataError(ServiceError):
    """Any failure talking to a quote/history provider."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class ProviderUnavailableError(MarketDataError):
    """Network error, 5xx, or a fetch that missed its deadline. Transient."""

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(f"Provider '{provider}' is unavailable: {reason}", provider=provider)
        self.reason = reason


class TickerNotFoundError(MarketDataError):
    """The provider does not know the symbol. Permanent, never retried."""

    def __init__(self, ticker: str, provider: str) -> None:
        super().__init__(f"Symbol '{ticker}' not found by {provider}", provider=provider)
        self.ticker = ticker


class RateLimitError(MarketDataError):
    def __init__(self, provider: str, retry_after: int | None = None) -> None:
        message = f"Rate limit exceeded for provider '{provider}'"
        if retry_after:
            message += f" (retry after {retry_after}s)"
        super().__init__(message, provider=provider)
        self.retry_after = retry_after


class PriceUnavailableError(MarketDataError):
    """
    Neither a fetched nor a cached price exists for the symbol.

    The price oracle raises this instead of inventing a value.
    """

    def __init__(self, symbol: str, reason: str) -> None:
        super().__init__(f"Could not fetch price for {symbol}: {reason}")
        self.symbol = symbol
        self.reason = reason


# =============================================================================
# IMPORT
# =============================================================================


class ImportFormatError(ServiceError):
    """Whole-file failure: undecodable bytes or an unsupported format hint."""

    def __init__(self, message: str, headers: list[str] | None = None) -> None:
        super().__init__(message)
        self.headers = headers or []


# =============================================================================
# AUTHENTICATION
# =============================================================================


class AuthenticationError(ServiceError):
    pass


class InvalidCredentialsError(AuthenticationError):
    def __init__(self, message: str = "Invalid authentication credentials") -> None:
        super().__init__(message)


class TokenExpiredError(AuthenticationError):
    def __init__(self, token_type: str = "access") -> None:
        super().__init__(f"{token_type.capitalize()} token has expired")
        self.token_type = token_type
