"""Error codes for CLI exit status.

Every fatal release error maps to one of these codes. Declining a
confirmation gate is not an error and exits with OK.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for the release command.

    These values are used as process exit codes and should remain stable:
    - 0: Success or clean cancellation
    - 1: User error (invalid version input, bad config values)
    - 2: Environment error (missing tools, gh not authenticated, no build tool)
    - 3: Build error (build failed, artifact missing, manifest mismatch)
    - 4: Network error (release host unreachable, release not created)
    - 5: I/O error (version control or filesystem operation failed)
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
