"""aksdeploy Exception Classes

Base exception hierarchy for the deployment pipeline.
All custom exceptions include help_text for actionable user guidance.
"""

from typing import List, Optional


class AksDeployError(Exception):
    """Base exception for all aksdeploy errors

    Attributes:
        message: Human-readable error description
        help_text: Optional actionable guidance for resolving the error
        exit_code: Process exit code the CLI should terminate with
    """

    exit_code: int = 1

    def __init__(self, message: str, help_text: str = None):
        """Initialize error with message and optional help text

        Args:
            message: Error description
            help_text: Optional remediation guidance
        """
        self.message = message
        self.help_text = help_text
        super().__init__(message)

    def __str__(self) -> str:
        """Format error message with help text if available"""
        if self.help_text:
            return f"{self.message}\n\nHelp: {self.help_text}"
        return self.message


class ConfigNotFoundError(AksDeployError):
    """Raised when deploy.yaml cannot be found"""

    def __init__(self, path: str):
        super().__init__(
            f"Deployment configuration not found: {path}",
            "Create deploy.yaml in the repository root or pass --config"
        )
        self.path = path


class ConfigValidationError(AksDeployError):
    """Raised when deploy.yaml is malformed or fails validation

    Each entry of ``errors`` names one offending field.
    """

    def __init__(self, reason: str, errors: Optional[List[str]] = None):
        message = f"Invalid deployment configuration: {reason}"

        help_text = None
        if errors:
            help_text = "Fix the following fields in deploy.yaml:\n"
            help_text += "\n".join(f"  - {error}" for error in errors)

        super().__init__(message, help_text)
        self.reason = reason
        self.errors = errors or []


class MissingSecretError(AksDeployError):
    """Raised when a $VAR secret reference points at an unset variable"""

    def __init__(self, env_var: str, field: str):
        message = f"Environment variable '{env_var}' not set for field '{field}'"
        help_text = (
            f"Export {env_var} before running, or add it to the repository "
            "secrets when running in GitHub Actions"
        )
        super().__init__(message, help_text)
        self.env_var = env_var
        self.field = field


class RuntimeDependencyError(AksDeployError):
    """Raised when required command line tools are missing

    The pipeline drives az, docker, kubectl and git. All of them must be on
    PATH before the first step starts.
    """

    def __init__(
        self,
        tool_name: str,
        required_for: Optional[str] = None,
        install_instructions: Optional[str] = None
    ):
        """Initialize runtime dependency error

        Args:
            tool_name: Name of the missing tool
            required_for: What operation requires this tool
            install_instructions: Optional installation guidance
        """
        message = f"Required tool '{tool_name}' not found in PATH"

        if required_for:
            message += f" (required for {required_for})"

        help_text = f"Install '{tool_name}' before running this command"

        if install_instructions:
            help_text += f"\n\n{install_instructions}"
        else:
            install_hints = {
                "az": "Install from: https://learn.microsoft.com/cli/azure/install-azure-cli",
                "docker": "Install from: https://docs.docker.com/engine/install/",
                "kubectl": "Install from: https://kubernetes.io/docs/tasks/tools/",
                "git": "Install with: brew install git (macOS) or apt-get install git (Linux)",
            }

            if tool_name in install_hints:
                help_text += f"\n\n{install_hints[tool_name]}"

        super().__init__(message, help_text)
        self.tool_name = tool_name
        self.required_for = required_for


class CommandFailedError(AksDeployError):
    """Raised when an external command exits non-zero

    The stderr carried here is already masked.
    """

    def __init__(self, command: str, exit_code: int, stderr: str = ""):
        message = f"Command '{command}' failed with exit code {exit_code}"

        help_text = None
        if stderr.strip():
            help_text = stderr.strip()

        super().__init__(message, help_text)
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr


class StepOrderError(AksDeployError):
    """Raised when a step reads a value an earlier step has not produced"""

    def __init__(self, value_name: str, produced_by: str):
        super().__init__(
            f"'{value_name}' is not available yet",
            f"The '{produced_by}' step must complete before this step runs"
        )
        self.value_name = value_name
        self.produced_by = produced_by


class ManifestError(AksDeployError):
    """Raised when a deployment manifest cannot be read, rendered or parsed"""

    def __init__(self, path: str, reason: str):
        super().__init__(
            f"Manifest '{path}' is invalid: {reason}",
            "Check the paths listed under deploy.manifests in deploy.yaml"
        )
        self.path = path
        self.reason = reason


class PipelineFailedError(AksDeployError):
    """Raised when a pipeline step fails; later steps are not run"""

    def __init__(self, step_name: str, cause: Exception, exit_code: int = 1, result=None):
        message = f"Step '{step_name}' failed: {describe_error(cause)}"
        help_text = cause.help_text if isinstance(cause, AksDeployError) else None
        super().__init__(message, help_text)
        self.step_name = step_name
        self.cause = cause
        self.exit_code = exit_code
        self.result = result


def describe_error(error: Exception) -> str:
    """One-line description; foreign exceptions are prefixed with their type"""
    if isinstance(error, AksDeployError):
        return error.message
    return f"{type(error).__name__}: {error}"
