"""Service-layer exceptions translated to HTTP responses by the endpoints."""
from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Required settings (secrets, endpoints) are absent; fail closed."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Missing configuration: {', '.join(missing)}")


class IdentityServiceError(RuntimeError):
    """The identity provider could not be reached or answered unexpectedly."""


class CheckoutError(RuntimeError):
    """Payment gateway refused or failed to create a checkout session."""


class UpgradeError(RuntimeError):
    """Applying a completed checkout to the user's profile failed."""


__all__ = ["ConfigurationError", "IdentityServiceError", "CheckoutError", "UpgradeError"]
