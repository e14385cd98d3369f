"""Core module for Gateway Ingress.

Exports the core components: exceptions and configuration.
"""

from gateway_ingress.core.exceptions import (
    GatewayIngressError,
    ConfigurationError,
    ConfigNotFound,
    ConfigParseError,
    ConfigValidationError,
    RemoteCallError,
    PermanentRemoteFailure,
    TransientRemoteFailure,
    RetryBudgetExhausted,
    InvalidStateTransition,
)
from gateway_ingress.core.config import (
    Configuration,
    Secrets,
    Services,
    GatewayQueueConfig,
    ConnectionPoolConfig,
    PoolTimeouts,
    load,
)
from gateway_ingress.durations import HumanDuration, parse_duration

__all__ = [
    # Exceptions
    "GatewayIngressError",
    "ConfigurationError",
    "ConfigNotFound",
    "ConfigParseError",
    "ConfigValidationError",
    "RemoteCallError",
    "PermanentRemoteFailure",
    "TransientRemoteFailure",
    "RetryBudgetExhausted",
    "InvalidStateTransition",
    # Configuration
    "Configuration",
    "Secrets",
    "Services",
    "GatewayQueueConfig",
    "ConnectionPoolConfig",
    "PoolTimeouts",
    "load",
    # Durations
    "HumanDuration",
    "parse_duration",
]
