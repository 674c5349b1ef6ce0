"""Exception taxonomy for cmsum.

Every failure the core can produce is one of these. Each carries enough
context (prefix, username, step) for the caller to log or render it.
"""


class CmsumError(Exception):
    """Base class for all cmsum errors."""

    pass


class ConfigReadError(CmsumError):
    """Raised when a CMS configuration file is missing or unreadable."""

    pass


class UnsupportedFamilyError(CmsumError):
    """Raised when a database driver token maps to no supported family."""

    def __init__(self, token: str):
        self.token = token
        super().__init__(f"Unsupported database type: {token!r}")


class DatabaseConnectionError(CmsumError, ConnectionError):
    """Raised when connecting to the database fails (network or auth)."""

    pass


class PrefixResolutionEmptyError(CmsumError):
    """Raised when no CMS installation could be found in a table listing."""

    pass


class UserNotFoundError(CmsumError):
    """Raised when a user lookup misses."""

    def __init__(self, prefix: str, username: str):
        self.prefix = prefix
        self.username = username
        super().__init__(f"User '{username}' not found under prefix '{prefix}'")


class UpdateAffectedRowMismatchError(CmsumError):
    """Raised inside an update transaction when a write touched the wrong row count.

    Raising this always rolls the whole transaction back.
    """

    def __init__(
        self,
        prefix: str,
        username: str,
        step: str,
        expected: int,
        actual: int,
    ):
        self.prefix = prefix
        self.username = username
        self.step = step
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Update of '{username}' under prefix '{prefix}' rolled back: "
            f"step '{step}' affected {actual} row(s), expected {expected}"
        )


class VersionUnresolvableError(CmsumError):
    """Raised when no version file or scheme yields a release identifier."""

    pass
