"""Exit codes of the obs-plugins CLI.

Scripts can rely on these codes to tell apart a refused operation (OBS
running, invalid path) from a failed one (network, archive, filesystem).
0 and 1 are the usual success and catch-all codes, 130 follows the shell
convention for SIGINT, and the plugin manager's own codes sit in 2-10.
"""


class ExitCode:
    """Process exit codes, one per failure class."""

    SUCCESS = 0
    GENERAL_ERROR = 1

    CONFIGURATION_ERROR = 2
    PRECONDITION_FAILED = 3  # OBS running, operation in progress
    INSTALL_ERROR = 4  # no usable asset, corrupt archive
    NETWORK_ERROR = 5
    FILESYSTEM_ERROR = 6
    INVALID_ARGUMENT = 7  # includes an invalid OBS path
    NOT_FOUND = 8  # unknown plugin, release or backup
    PERMISSION_DENIED = 9
    RATE_LIMITED = 10

    CANCELLED = 130

    @classmethod
    def get_name(cls, code: int) -> str:
        """Constant name for ``code``, e.g. ``"RATE_LIMITED"``."""
        for name, value in vars(cls).items():
            if name.isupper() and value == code:
                return name
        return f"UNKNOWN({code})"

    @classmethod
    def get_description(cls, code: int) -> str:
        """One-line description of ``code`` for help output and logs."""
        return _DESCRIPTIONS.get(code, f"Unknown exit code: {code}")


_DESCRIPTIONS = {
    ExitCode.SUCCESS: "Operation completed successfully",
    ExitCode.GENERAL_ERROR: "An unexpected error occurred",
    ExitCode.CONFIGURATION_ERROR: "Configuration error or invalid config file",
    ExitCode.PRECONDITION_FAILED: "Operation refused by a safety check",
    ExitCode.INSTALL_ERROR: "Release asset missing or archive unusable",
    ExitCode.NETWORK_ERROR: "Network or GitHub API error",
    ExitCode.FILESYSTEM_ERROR: "File or directory operation failed",
    ExitCode.INVALID_ARGUMENT: "Invalid command-line argument or OBS path",
    ExitCode.NOT_FOUND: "Requested plugin, release or backup not found",
    ExitCode.PERMISSION_DENIED: "Permission denied",
    ExitCode.RATE_LIMITED: "GitHub API rate limit exceeded",
    ExitCode.CANCELLED: "Operation cancelled by user",
}
