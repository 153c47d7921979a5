"""
Error taxonomy for the payments service.

Services raise these; app/main.py maps them to HTTP responses.
"""


class PaymentServiceError(Exception):
    """Base class for every domain error raised by the payments service."""


class ConfigurationError(PaymentServiceError):
    """Missing or invalid merchant credentials, secrets or URLs."""


class AuthenticationError(PaymentServiceError):
    """Missing or invalid bearer token."""


class SignatureMismatch(PaymentServiceError):
    """Callback pp_SecureHash does not match the recomputed hash."""


class PersistenceError(PaymentServiceError):
    """Transaction or profile store unavailable or rejected a write."""
