"""Standard exit codes for the placetime fetcher CLI.

This module defines the exit codes used across the CLI for consistent
error reporting and scripting support.
"""


class ExitCode:
    """Standard exit codes for the placetime fetcher.

    These codes follow common Unix conventions where possible:
    - 0: Success
    - 1: General error
    - 130: Terminated by Ctrl+C (SIGINT)

    Fetcher-specific codes start at 2:
    - 2: Configuration error
    - 3: Feed error
    - 5: Network error
    - 6: Storage error
    - 7: Invalid argument
    """

    # Standard success
    SUCCESS = 0

    # General errors
    GENERAL_ERROR = 1

    # Fetcher-specific errors
    CONFIGURATION_ERROR = 2
    FEED_ERROR = 3
    NETWORK_ERROR = 5
    STORAGE_ERROR = 6
    INVALID_ARGUMENT = 7

    # Signal-based exits (128 + signal number)
    CANCELLED = 130  # Ctrl+C (SIGINT = 2)

    @classmethod
    def get_name(cls, code: int) -> str:
        """Get the name of an exit code.

        Args:
            code: The exit code value

        Returns:
            Human-readable name for the exit code
        """
        names = {
            cls.SUCCESS: "SUCCESS",
            cls.GENERAL_ERROR: "GENERAL_ERROR",
            cls.CONFIGURATION_ERROR: "CONFIGURATION_ERROR",
            cls.FEED_ERROR: "FEED_ERROR",
            cls.NETWORK_ERROR: "NETWORK_ERROR",
            cls.STORAGE_ERROR: "STORAGE_ERROR",
            cls.INVALID_ARGUMENT: "INVALID_ARGUMENT",
            cls.CANCELLED: "CANCELLED",
        }
        return names.get(code, f"UNKNOWN({code})")

    @classmethod
    def get_description(cls, code: int) -> str:
        """Get the description of an exit code."""
        descriptions = {
            cls.SUCCESS: "Operation completed successfully",
            cls.GENERAL_ERROR: "An unexpected error occurred",
            cls.CONFIGURATION_ERROR: "Configuration error or unusable image path",
            cls.FEED_ERROR: "Feed content could not be parsed",
            cls.NETWORK_ERROR: "Network or connectivity error",
            cls.STORAGE_ERROR: "Datastore error",
            cls.INVALID_ARGUMENT: "Invalid command-line argument",
            cls.CANCELLED: "Operation cancelled by user",
        }
        return descriptions.get(code, f"Unknown exit code: {code}")
