"""Tests for custom exception hierarchy in appdeck.lib.errors."""

from appdeck.lib.errors import (
    AlreadyDeployedError,
    AppDeckError,
    ConfigError,
    DeployFailureError,
    DeployIOError,
    DeploymentError,
    IllegalStateError,
    InvalidRequestError,
    NotDeployedError,
)


class TestAppDeckError:
    """Tests for base AppDeckError exception."""

    def test_appdeck_error_creates_with_message(self) -> None:
        """Test that AppDeckError can be created with a message."""
        error = AppDeckError("Test error message")
        assert str(error) == "Test error message"

    def test_appdeck_error_is_exception(self) -> None:
        """Test that AppDeckError is an Exception subclass."""
        assert isinstance(AppDeckError("Test"), Exception)


class TestConfigError:
    """Tests for ConfigError exception."""

    def test_config_error_formats_message_with_field(self) -> None:
        """Test that ConfigError formats messages with field information."""
        error = ConfigError("shutdown_timeout", "must be an integer")
        assert str(error) == (
            "Configuration error in 'shutdown_timeout': must be an integer"
        )
        assert error.field == "shutdown_timeout"
        assert error.message == "must be an integer"

    def test_config_error_is_appdeck_error(self) -> None:
        """Test that ConfigError is an AppDeckError subclass."""
        assert isinstance(ConfigError("f", "m"), AppDeckError)


class TestDeploymentErrors:
    """Tests for DeploymentError and its subclasses."""

    def test_deployment_error_includes_operation(self) -> None:
        """Test the operation prefixes the message."""
        error = DeploymentError("deploy", "no ports left")
        assert str(error) == "deploy failed: no ports left"
        assert error.operation == "deploy"
        assert error.message == "no ports left"

    def test_invalid_request_is_not_value_error(self) -> None:
        """Test InvalidRequestError escapes pydantic validators unchanged."""
        error = InvalidRequestError("definition must not be None")
        assert isinstance(error, DeploymentError)
        assert not isinstance(error, ValueError)
        assert error.operation == "deploy"

    def test_already_deployed(self) -> None:
        """Test AlreadyDeployedError is an illegal state on deploy."""
        error = AlreadyDeployedError("default.app")
        assert isinstance(error, IllegalStateError)
        assert error.deployment_id == "default.app"
        assert error.operation == "deploy"
        assert "App for 'default.app' is already running" in str(error)

    def test_not_deployed(self) -> None:
        """Test NotDeployedError is an illegal state on undeploy."""
        error = NotDeployedError("default.app")
        assert isinstance(error, IllegalStateError)
        assert error.operation == "undeploy"
        assert "App for 'default.app' is not deployed" in str(error)

    def test_deploy_failure_context(self) -> None:
        """Test DeployFailureError carries the failing instance."""
        error = DeployFailureError("exec failed", deployment_id="g.a", instance_index=1)
        assert error.deployment_id == "g.a"
        assert error.instance_index == 1
        assert str(error) == "deploy failed: exec failed"

    def test_deploy_io_error(self) -> None:
        """Test DeployIOError is a DeploymentError."""
        assert isinstance(DeployIOError("disk full"), DeploymentError)
