"""Gateway Ingress Exception Hierarchy.

All custom exceptions inherit from GatewayIngressError, enabling consistent
error handling across the codebase.

Exception Categories:
- Configuration errors -> always fatal at startup (ConfigurationError family)
- Remote call errors -> produced by the resilient call policy as the final
  error of a call sequence (RemoteCallError family)

Usage:
    from gateway_ingress.core.exceptions import ConfigNotFound

    raise ConfigNotFound(config_path="/etc/ingress/config.yaml")
"""

from __future__ import annotations

from typing import Any, Optional


class GatewayIngressError(Exception):
    """Base exception for all gateway ingress errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: Optional[str] = None) -> None:
        """Initialize GatewayIngressError.

        Args:
            message: Optional custom message. Defaults to a generic message.
        """
        self.message = message or "A gateway ingress error occurred."
        super().__init__(self.message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context dictionary for structured logging.

        Returns:
            dict: Key-value pairs of exception context.
        """
        return {}

    def __repr__(self) -> str:
        """Return debug representation."""
        return f"{self.__class__.__name__}({self.message!r})"


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(GatewayIngressError):
    """Configuration file or value is invalid.

    Attributes:
        config_path: Path to the configuration file.
        key: The dotted configuration key that caused the error.
    """

    def __init__(
        self,
        config_path: str,
        key: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        """Initialize ConfigurationError.

        Args:
            config_path: Path to the config file.
            key: Optional dotted key that caused the error.
            message: Optional custom message.
        """
        self.config_path = config_path
        self.key = key

        if message is None:
            key_info = f" key '{key}'" if key else ""
            message = f"Configuration error in '{config_path}'{key_info}."

        super().__init__(message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for configuration error."""
        return {
            "config_path": self.config_path,
            "key": self.key,
        }

    def __repr__(self) -> str:
        """Return debug representation with attributes."""
        return (
            f"{self.__class__.__name__}(config_path={self.config_path!r}, "
            f"key={self.key!r})"
        )


class ConfigNotFound(ConfigurationError):
    """Settings file does not exist or cannot be read."""

    def __init__(self, config_path: str, message: Optional[str] = None) -> None:
        if message is None:
            message = f"Configuration file not found or unreadable: {config_path}"
        super().__init__(config_path=config_path, message=message)


class ConfigParseError(ConfigurationError):
    """Settings file or environment overlay could not be parsed or merged."""

    def __init__(
        self,
        config_path: str,
        key: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        if message is None:
            message = f"Could not parse configuration from {config_path}"
        super().__init__(config_path=config_path, key=key, message=message)


class ConfigValidationError(ConfigurationError):
    """Merged configuration failed type or value validation.

    Attributes:
        key: Dotted path of the first offending field.
        errors: Every offending field path paired with its reason.
    """

    def __init__(
        self,
        config_path: str,
        key: str,
        errors: Optional[list[tuple[str, str]]] = None,
        message: Optional[str] = None,
    ) -> None:
        """Initialize ConfigValidationError.

        Args:
            config_path: Path to the config file.
            key: Dotted path of the first offending field.
            errors: Optional list of (field path, reason) pairs.
            message: Optional custom message.
        """
        self.errors = errors or []

        if message is None:
            reason = self.errors[0][1] if self.errors else "invalid value"
            message = f"Configuration field '{key}' is invalid: {reason}"

        super().__init__(config_path=config_path, key=key, message=message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for validation error."""
        ctx = super().context
        ctx["fields"] = [path for path, _ in self.errors]
        return ctx


# =============================================================================
# Remote Call Errors
# =============================================================================


class RemoteCallError(GatewayIngressError):
    """Base exception for failed remote procedure calls.

    Attributes:
        status_code: Status code reported by the transport.
        detail: Message reported by the transport.
    """

    def __init__(
        self,
        status_code: Any,
        detail: str = "",
        message: Optional[str] = None,
    ) -> None:
        """Initialize RemoteCallError.

        Args:
            status_code: Status code of the failed call.
            detail: Transport-supplied failure message.
            message: Optional custom message.
        """
        self.status_code = status_code
        self.detail = detail

        if message is None:
            code_name = getattr(status_code, "name", status_code)
            message = f"Remote call failed with {code_name}: {detail}"

        super().__init__(message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for remote call error."""
        return {
            "status_code": getattr(self.status_code, "name", self.status_code),
            "detail": self.detail,
        }

    def __repr__(self) -> str:
        """Return debug representation."""
        return (
            f"{self.__class__.__name__}(status_code={self.status_code!r}, "
            f"detail={self.detail!r})"
        )


class PermanentRemoteFailure(RemoteCallError):
    """Remote call failed with a status that retrying will not fix."""


class TransientRemoteFailure(RemoteCallError):
    """Remote call failed with a status that is eligible for retry."""


class RetryBudgetExhausted(RemoteCallError):
    """Transient failures continued past the backoff's time budget.

    Attributes:
        attempts: Number of attempts made before giving up.
        elapsed: Seconds elapsed since the call sequence started.
    """

    def __init__(
        self,
        status_code: Any,
        detail: str = "",
        attempts: Optional[int] = None,
        elapsed: Optional[float] = None,
        message: Optional[str] = None,
    ) -> None:
        self.attempts = attempts
        self.elapsed = elapsed

        if message is None:
            code_name = getattr(status_code, "name", status_code)
            elapsed_info = f" after {elapsed:.3f}s" if elapsed is not None else ""
            message = f"Retry budget exhausted{elapsed_info}; last error {code_name}: {detail}"

        super().__init__(status_code, detail, message=message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context including retry accounting."""
        ctx = super().context
        ctx["attempts"] = self.attempts
        ctx["elapsed"] = self.elapsed
        return ctx


class InvalidStateTransition(GatewayIngressError):
    """Call sequence was driven through an illegal state change.

    Attributes:
        from_state: State the sequence was in.
        to_state: State that was requested.
    """

    def __init__(
        self,
        from_state: str,
        to_state: str,
        message: Optional[str] = None,
    ) -> None:
        self.from_state = from_state
        self.to_state = to_state

        if message is None:
            message = f"Invalid call sequence transition: {from_state} -> {to_state}"

        super().__init__(message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for the transition."""
        return {"from_state": self.from_state, "to_state": self.to_state}

    def __repr__(self) -> str:
        """Return debug representation."""
        return (
            f"InvalidStateTransition(from_state={self.from_state!r}, "
            f"to_state={self.to_state!r})"
        )
