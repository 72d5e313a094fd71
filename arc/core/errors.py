"""Exit codes for CLI commands.

These values are used as process exit codes and should remain stable:
- 0: Success
- 1: User error (bad input, release already exists, not started)
- 2: Environment error (missing workspace, missing tools, bad config)
- 3: Release error (repositories inconsistent, CI gate closed, tag conflict)
- 4: Network error (push/fetch failed, GitHub or registry unreachable)
- 5: I/O error (state or chart file could not be written)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    RELEASE_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
