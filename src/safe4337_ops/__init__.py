"""safe4337-ops: Safe + ERC-4337 operational tooling for Gelato on Sepolia."""

__version__ = "0.1.0"

from .config import Safe4337Settings, get_settings, reset_settings
from .exceptions import (
    BundlerError,
    ChainError,
    ConfigurationError,
    DeploymentError,
    PaymasterError,
    Safe4337Error,
    ValidationError,
)

__all__ = [
    "__version__",
    "Safe4337Settings",
    "get_settings",
    "reset_settings",
    "Safe4337Error",
    "ConfigurationError",
    "ValidationError",
    "ChainError",
    "DeploymentError",
    "BundlerError",
    "PaymasterError",
]
