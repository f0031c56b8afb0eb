"""Unit tests for aksdeploy exception classes"""

from aksdeploy.exceptions import (
    AksDeployError,
    CommandFailedError,
    ConfigValidationError,
    MissingSecretError,
    PipelineFailedError,
    RuntimeDependencyError,
    StepOrderError,
    describe_error,
)


class TestAksDeployError:
    """Test base AksDeployError exception class"""

    def test_basic_error_message(self):
        error = AksDeployError("Something went wrong")

        assert error.message == "Something went wrong"
        assert error.help_text is None
        assert str(error) == "Something went wrong"
        assert error.exit_code == 1

    def test_error_with_help_text(self):
        error = AksDeployError("Something went wrong", help_text="Run 'aksdeploy validate'")

        assert "Help: Run 'aksdeploy validate'" in str(error)


class TestRuntimeDependencyError:
    """Test RuntimeDependencyError install hints"""

    def test_default_hints(self):
        assert "learn.microsoft.com" in RuntimeDependencyError("az").help_text
        assert "docs.docker.com" in RuntimeDependencyError("docker").help_text
        assert "kubernetes.io" in RuntimeDependencyError("kubectl").help_text

    def test_required_for_in_message(self):
        error = RuntimeDependencyError("kubectl", required_for="cluster deployment")

        assert "cluster deployment" in error.message
        assert isinstance(error, AksDeployError)

    def test_custom_instructions(self):
        error = RuntimeDependencyError("custom-tool", install_instructions="Download it")

        assert "Download it" in error.help_text


class TestCommandFailedError:
    """Test CommandFailedError carries exit status"""

    def test_exit_code_and_stderr(self):
        error = CommandFailedError("docker push x", 2, "denied: requested access\n")

        assert error.exit_code == 2
        assert "exit code 2" in error.message
        assert error.help_text == "denied: requested access"

    def test_blank_stderr_has_no_help(self):
        error = CommandFailedError("kubectl apply", 1, "   ")

        assert error.help_text is None


class TestOtherErrors:
    """Test remaining error classes"""

    def test_config_validation_lists_fields(self):
        error = ConfigValidationError("2 errors", ["registry.name: bad", "deploy: missing"])

        assert "registry.name: bad" in error.help_text
        assert "deploy: missing" in error.help_text
        assert error.errors == ["registry.name: bad", "deploy: missing"]

    def test_missing_secret(self):
        error = MissingSecretError("AZURE_CREDENTIALS", "azure.credentials")

        assert "AZURE_CREDENTIALS" in error.message
        assert "azure.credentials" in error.message

    def test_step_order(self):
        error = StepOrderError("registry credentials", "create-registry")

        assert "registry credentials" in error.message
        assert "create-registry" in error.help_text

    def test_pipeline_failed_wraps_cause(self):
        cause = CommandFailedError("docker push x", 3, "unauthorized")
        error = PipelineFailedError("build-and-push", cause, exit_code=3)

        assert error.step_name == "build-and-push"
        assert error.exit_code == 3
        assert "build-and-push" in error.message
        assert "docker push x" in error.message
        assert error.help_text == "unauthorized"
        assert error.result is None

    def test_pipeline_failed_foreign_cause(self):
        error = PipelineFailedError("deploy", TypeError("'NoneType' object is not iterable"))

        assert error.message == "Step 'deploy' failed: TypeError: 'NoneType' object is not iterable"
        assert error.help_text is None
        assert error.exit_code == 1


def test_describe_error():
    assert describe_error(AksDeployError("registry missing", "create it")) == "registry missing"
    assert describe_error(KeyError("image")) == "KeyError: 'image'"
