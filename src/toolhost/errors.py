"""Exception types shared across toolhost.

Recoverable tool failures are never raised: the broker turns them into
error-flagged ToolCallResult values. The exceptions here cover the fatal
paths: bad configuration, failed provider loading, and model failures.
"""


class ConfigError(Exception):
    """Raised when a configuration file cannot be read or parsed."""


class ProviderConfigError(ConfigError):
    """Raised when a tool provider spec is invalid.

    Detected before any connection is attempted.
    """


class BrokerLoadError(Exception):
    """Raised when the tool broker fails to load its providers.

    Attributes:
        provider: Name of the provider that failed, if known
        cause: The original exception
        close_errors: Errors raised while closing already-open connections
    """

    def __init__(
        self,
        provider: str | None,
        cause: BaseException,
        close_errors: list[Exception] | None = None,
    ) -> None:
        self.provider = provider
        self.cause = cause
        self.close_errors = close_errors or []

        if provider:
            message = f"Failed to load tool provider '{provider}': {cause}"
        else:
            message = f"Failed to load tool providers: {cause}"
        if self.close_errors:
            details = "; ".join(str(e) for e in self.close_errors)
            message += f" (additionally failed to close connections: {details})"
        super().__init__(message)


class ModelAdapterError(Exception):
    """Raised when the model adapter cannot produce a response."""
