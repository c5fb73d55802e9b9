import functools
import os

import pytest


def skip_if_missing_env_vars(required_vars):
    """
    Decorator to skip tests if required environment variables are not set.

    Args:
        required_vars (list): List of environment variable names to check.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            missing = [var for var in required_vars if not os.getenv(var)]
            if missing:
                pytest.skip(
                    f"Missing required environment variables: {', '.join(missing)}. "
                    "Ensure they are set in your environment or .env file."
                )
            return func(*args, **kwargs)

        return wrapper

    return decorator


def verify_cli_success(result):
    """
    Verify common CLI success criteria for workflow tests.

    Args:
        result: CliRunner result object from typer.testing
    """
    assert result.exit_code == 0, (
        f"Expected exit code 0, got {result.exit_code}\n"
        f"Output: {result.stdout}\nError: {result.stderr}"
    )


def verify_cli_error(result, expected_exit_code, expected_error_substring):
    """
    Verify CLI error handling criteria for workflow tests.

    Args:
        result: CliRunner result object from typer.testing
        expected_exit_code: Expected non-zero exit code
        expected_error_substring: Expected error message substring
    """
    assert result.exit_code == expected_exit_code, (
        f"Expected exit code {expected_exit_code}, got {result.exit_code}\n"
        f"Output: {result.stdout}\nError: {result.stderr}"
    )

    # Check both stdout and stderr for error message
    error_output = result.stdout + result.stderr
    assert expected_error_substring in error_output, (
        f"Expected error message '{expected_error_substring}' not found\n"
        f"Output: {result.stdout}\nError: {result.stderr}"
    )
