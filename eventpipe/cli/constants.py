"""Exit codes shared by CLI commands."""

SYSTEM_EXIT_CODE = 1
VALIDATION_EXIT_CODE = 10
STORAGE_EXIT_CODE = 20
CONFIG_EXIT_CODE = 30
NOT_FOUND_EXIT_CODE = 40

__all__ = [
    "CONFIG_EXIT_CODE",
    "NOT_FOUND_EXIT_CODE",
    "STORAGE_EXIT_CODE",
    "SYSTEM_EXIT_CODE",
    "VALIDATION_EXIT_CODE",
]
