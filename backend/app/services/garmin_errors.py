"""Error taxonomy for the Garmin integration.

Provider-level errors are raised by the provider adapters (coarse categories only);
the session manager and activity fetcher classify them into the user-facing
GarminError subclasses that routes translate to HTTP responses.
"""


class ProviderError(Exception):
    """Base for errors raised by a remote activity provider adapter."""


class ProviderAuthError(ProviderError):
    """Provider rejected the credentials or session tokens."""

    def __init__(self, message: str = "authentication rejected", *, mfa_required: bool = False):
        super().__init__(message)
        self.mfa_required = mfa_required


class ProviderUnavailableError(ProviderError):
    """Network failure, rate limiting or provider-side outage."""


class ProviderResponseError(ProviderError):
    """Provider answered with something we could not interpret."""


class GarminError(Exception):
    """Base for Garmin failures surfaced to the route layer."""

    message = "Garmin request failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class InvalidCredentials(GarminError):
    message = "Invalid Garmin username or password"


class UnsupportedAccount(GarminError):
    message = "MFA-enabled accounts are not supported"


class ConnectFailed(GarminError):
    message = "Failed to connect to Garmin"


class NotConnected(GarminError):
    message = "Not connected to Garmin"


class ProviderUnavailable(GarminError):
    message = "Failed to fetch activities from Garmin"
