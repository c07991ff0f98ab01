"""Errors raised while signing members up or in."""


class AccountsServiceError(Exception):
    pass


class UserRegistrationError(AccountsServiceError):
    """Email already taken, or the invite code points nowhere."""


class InvalidCredentialsError(AccountsServiceError):
    """Unknown email or wrong password; callers are not told which."""


class InactiveAccountError(AccountsServiceError):
    """The member's account has been switched off by an operator."""
