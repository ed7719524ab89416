"""Tests for exit codes module."""

from obs_plugin_manager.cli.exit_codes import ExitCode


class TestExitCode:
    """Test exit code constants."""

    def test_success_code(self) -> None:
        """Test SUCCESS exit code."""
        assert ExitCode.SUCCESS == 0

    def test_general_error_code(self) -> None:
        assert ExitCode.GENERAL_ERROR == 1

    def test_manager_codes(self) -> None:
        """Test plugin manager exit codes are 2-10."""
        assert ExitCode.CONFIGURATION_ERROR == 2
        assert ExitCode.PRECONDITION_FAILED == 3
        assert ExitCode.INSTALL_ERROR == 4
        assert ExitCode.NETWORK_ERROR == 5
        assert ExitCode.FILESYSTEM_ERROR == 6
        assert ExitCode.INVALID_ARGUMENT == 7
        assert ExitCode.NOT_FOUND == 8
        assert ExitCode.PERMISSION_DENIED == 9
        assert ExitCode.RATE_LIMITED == 10

    def test_cancelled_code(self) -> None:
        """Test CANCELLED exit code follows 128 + SIGINT."""
        assert ExitCode.CANCELLED == 130

    def test_codes_are_unique(self) -> None:
        codes = [
            value for name, value in vars(ExitCode).items()
            if name.isupper() and isinstance(value, int)
        ]
        assert len(codes) == len(set(codes))


class TestExitCodeNames:
    """Test get_name and get_description."""

    def test_get_name(self) -> None:
        assert ExitCode.get_name(ExitCode.RATE_LIMITED) == "RATE_LIMITED"
        assert ExitCode.get_name(0) == "SUCCESS"

    def test_get_name_unknown(self) -> None:
        assert ExitCode.get_name(99) == "UNKNOWN(99)"

    def test_get_description(self) -> None:
        assert ExitCode.get_description(ExitCode.PRECONDITION_FAILED) == "Operation refused by a safety check"

    def test_get_description_unknown(self) -> None:
        assert ExitCode.get_description(99) == "Unknown exit code: 99"
