"""Exceptions raised by cryptodash.

Auth errors carry the user-facing message the backend returns; the FastAPI
handlers in ``cryptodash.server`` map them to status codes.
"""


class CryptodashError(Exception):
    """Base class for all cryptodash errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class UnsupportedCurrencyError(CryptodashError):
    def __init__(self, currency: str) -> None:
        self.currency = currency
        super().__init__(f"Unsupported currency: {currency}")


class AuthError(CryptodashError):
    """A request the user can fix (reported with HTTP 400)."""


class UserAlreadyExistsError(AuthError):
    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__("User already exists")


class UserNotFoundError(AuthError):
    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__("User not found")


class InvalidCredentialsError(AuthError):
    def __init__(self) -> None:
        super().__init__("Invalid credentials")


class UserStoreError(CryptodashError):
    """The user store failed; ``message`` is the generic text shown to clients."""


class NotLoggedInError(CryptodashError):
    def __init__(self) -> None:
        super().__init__("Not logged in. Run `cryptodash login EMAIL PASSWORD` first.")
