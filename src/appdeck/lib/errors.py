"""Custom exception hierarchy for AppDeck configuration and deployments."""


class AppDeckError(Exception):
    """Base exception for all AppDeck errors.

    All AppDeck-specific exceptions inherit from this class, enabling
    centralized exception handling in the CLI and in embedding code.
    """

    pass


class ConfigError(AppDeckError):
    """Exception raised for deployer configuration errors.

    Raised when the deployer properties file cannot be read, parsed or
    validated.

    Attributes:
        field: The configuration field that caused the error
        message: Human-readable error message describing the issue
    """

    def __init__(self, field: str, message: str) -> None:
        """Initialize ConfigError with field and message.

        Args:
            field: Configuration field name where error occurred
            message: Descriptive error message
        """
        self.field = field
        self.message = message
        super().__init__(f"Configuration error in '{field}': {message}")


class DeploymentError(AppDeckError):
    """Exception raised when a deployer operation fails.

    Attributes:
        operation: Deployer operation that failed (deploy, undeploy, status)
        message: Human-readable error message
    """

    def __init__(self, operation: str, message: str) -> None:
        """Create a deployment error with the failing operation.

        Args:
            operation: Name of the deployer operation
            message: Descriptive error message
        """
        self.operation = operation
        self.message = message
        super().__init__(f"{operation} failed: {message}")


class InvalidRequestError(DeploymentError):
    """Exception raised for malformed deployment requests.

    Covers missing definitions or artifacts and deployment properties that
    cannot be interpreted, such as a non-numeric instance count.
    """

    def __init__(self, message: str, operation: str = "deploy") -> None:
        """Create an invalid request error."""
        super().__init__(operation=operation, message=message)


class IllegalStateError(DeploymentError):
    """Exception raised when the deployer API is used out of order."""

    pass


class AlreadyDeployedError(IllegalStateError):
    """Exception raised when deploying an id that is already tracked.

    Attributes:
        deployment_id: The deployment id that is already running
    """

    def __init__(self, deployment_id: str) -> None:
        """Create an error for an already running deployment."""
        self.deployment_id = deployment_id
        super().__init__(
            operation="deploy",
            message=f"App for '{deployment_id}' is already running",
        )


class NotDeployedError(IllegalStateError):
    """Exception raised when undeploying an id that is not tracked.

    Attributes:
        deployment_id: The unknown deployment id
    """

    def __init__(self, deployment_id: str) -> None:
        """Create an error for a deployment that is not running."""
        self.deployment_id = deployment_id
        super().__init__(
            operation="undeploy",
            message=f"App for '{deployment_id}' is not deployed",
        )


class DeployIOError(DeploymentError):
    """Exception raised when working directories or artifacts are unusable.

    Wraps the underlying ``OSError`` as ``__cause__``.
    """

    def __init__(self, message: str, operation: str = "deploy") -> None:
        """Create an I/O failure error."""
        super().__init__(operation=operation, message=message)


class DeployFailureError(DeploymentError):
    """Exception raised when one or more app instances could not be launched.

    Attributes:
        deployment_id: Deployment whose fan-out failed
        instance_index: Index of the instance that failed to launch, if known
    """

    def __init__(
        self,
        message: str,
        deployment_id: str | None = None,
        instance_index: int | None = None,
    ) -> None:
        """Create a launch failure error with optional deployment context."""
        self.deployment_id = deployment_id
        self.instance_index = instance_index
        super().__init__(operation="deploy", message=message)
