"""Unit tests for cli module.

Tests the click commands with the Azure executor replaced by an
in-memory fake:
- run: exit codes for success, provisioning failure and teardown failure
- plan: table output without remote calls
- config init / show
"""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from azzonal.cli import main
from azzonal.config_manager import ConfigError
from tests.mocks.azure_mock import FakeResourceExecutor


@pytest.fixture
def runner(monkeypatch):
    # Wide enough that rich never truncates table cells
    monkeypatch.setenv("COLUMNS", "250")
    return CliRunner()


@pytest.fixture
def config_path(temp_config_dir):
    """Path of a config file that does not exist yet."""
    return str(temp_config_dir / "config.toml")


class TestRunCommand:
    """Tests for `azzonal run`."""

    def test_successful_run_exits_zero(self, runner, config_path, sp_environment):
        """Test that a full run exits 0 and deletes the resource group."""
        executor = FakeResourceExecutor()
        with patch("azzonal.cli.AzureResourceExecutor", return_value=executor):
            result = runner.invoke(main, ["run", "--config", config_path])

        assert result.exit_code == 0
        assert len(executor.delete_calls) == 1
        assert "Provisioned 10 resources" in result.output

    def test_provisioning_failure_exits_one(self, runner, config_path):
        """Test that a failing step exits 1 after teardown."""
        executor = FakeResourceExecutor(fail_on={"vm_2"}, error=Exception("AllocationFailed"))
        with patch("azzonal.cli.AzureResourceExecutor", return_value=executor):
            result = runner.invoke(main, ["run", "--config", config_path])

        assert result.exit_code == 1
        assert len(executor.delete_calls) == 1
        assert "AllocationFailed" in result.output

    def test_teardown_failure_keeps_exit_zero(self, runner, config_path):
        """Test that a teardown error is reported but does not fail the run."""
        executor = FakeResourceExecutor(delete_error=Exception("delete timed out"))
        with patch("azzonal.cli.AzureResourceExecutor", return_value=executor):
            result = runner.invoke(main, ["run", "--config", config_path])

        assert result.exit_code == 0
        assert "Warning:" in result.output
        assert "delete timed out" in result.output

    def test_region_and_zone_flags(self, runner, config_path):
        """Test that CLI flags reach the created resources."""
        executor = FakeResourceExecutor()
        with patch("azzonal.cli.AzureResourceExecutor", return_value=executor):
            result = runner.invoke(
                main, ["run", "--config", config_path, "--region", "westus2", "--zone", "2"]
            )

        assert result.exit_code == 0
        disk_parameters = [p for p in executor.parameters.values() if "disk_size_gb" in p]
        assert disk_parameters[0]["location"] == "westus2"
        assert disk_parameters[0]["zones"] == ["2"]

    def test_executor_built_from_environment(self, runner, config_path, sp_environment):
        """Test that credentials are read from the environment."""
        with patch(
            "azzonal.cli.AzureResourceExecutor", return_value=FakeResourceExecutor()
        ) as mock_executor:
            runner.invoke(main, ["run", "--config", config_path])

        sp_config = mock_executor.call_args[0][0]
        assert sp_config.client_id == sp_environment["CLIENT_ID"]
        assert sp_config.subscription_id == sp_environment["SUBSCRIPTION_ID"]

    def test_invalid_image_exits_before_azure(self, runner, config_path):
        """Test that a config error stops the run before any remote call."""
        with patch("azzonal.cli.AzureResourceExecutor") as mock_executor:
            result = runner.invoke(main, ["run", "--config", config_path, "--image", "bad"])

        assert result.exit_code == 1
        assert "Invalid image URN" in result.output
        mock_executor.assert_not_called()


class TestPlanCommand:
    """Tests for `azzonal plan`."""

    def test_plan_prints_steps(self, runner, config_path):
        """Test that the plan table lists every step."""
        with patch("azzonal.cli.AzureResourceExecutor") as mock_executor:
            result = runner.invoke(main, ["plan", "--config", config_path])

        assert result.exit_code == 0
        for key in ("resource_group", "virtual_network", "data_disk", "vm_2"):
            assert key in result.output
        mock_executor.assert_not_called()


class TestConfigCommands:
    """Tests for `azzonal config`."""

    def test_init_writes_defaults(self, runner, config_path):
        """Test that config init writes the default values."""
        result = runner.invoke(main, ["config", "init", "--config", config_path])

        assert result.exit_code == 0
        assert "Wrote config file" in result.output

        shown = runner.invoke(main, ["config", "show", "--config", config_path])
        assert "default_region = eastus2" in shown.output
        assert "data_disk_size_gb = 100" in shown.output

    def test_init_refuses_overwrite(self, runner, config_path):
        """Test that an existing file is not overwritten without --force."""
        runner.invoke(main, ["config", "init", "--config", config_path])
        result = runner.invoke(main, ["config", "init", "--config", config_path])

        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_show_rejects_secrets(self, runner, temp_config_dir):
        """Test that a config file holding a secret is refused."""
        path = temp_config_dir / "config.toml"
        path.write_text('client_secret = "oops"\n')

        result = runner.invoke(main, ["config", "show", "--config", str(path)])

        assert result.exit_code == 1
        assert "Secrets must not be stored" in result.output

    def test_show_error_is_sanitized(self, runner, config_path):
        """Test that secrets inside a config error never reach the console."""
        with patch(
            "azzonal.cli.ConfigManager.load_config",
            side_effect=ConfigError("Failed to load config: client_secret=abc123"),
        ):
            result = runner.invoke(main, ["config", "show", "--config", config_path])

        assert result.exit_code == 1
        assert "abc123" not in result.output
        assert "client_secret=[REDACTED]" in result.output

    def test_init_error_is_sanitized(self, runner, config_path):
        """Test that a failed save is reported without secrets."""
        with patch(
            "azzonal.cli.ConfigManager.save_config",
            side_effect=ConfigError("Failed to save config: password=hunter2"),
        ):
            result = runner.invoke(main, ["config", "init", "--config", config_path])

        assert result.exit_code == 1
        assert "hunter2" not in result.output
