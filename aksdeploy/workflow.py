"""GitHub Actions workflow generation"""

from pathlib import Path
from typing import List, Optional, Tuple

from jinja2 import Environment, PackageLoader, StrictUndefined

from aksdeploy import __version__
from aksdeploy.config import PipelineConfig
from aksdeploy.exceptions import AksDeployError
from aksdeploy.secrets import SecretResolver

DEFAULT_WORKFLOW_PATH = Path(".github/workflows/aksdeploy.yml")
TEMPLATE_NAME = "github-workflow.yml.j2"


def _create_jinja_env() -> Environment:
    return Environment(
        loader=PackageLoader("aksdeploy", "templates"),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        auto_reload=False
    )


def secret_env_vars(config: PipelineConfig) -> List[Tuple[str, str]]:
    """(env var, repository secret) pairs the workflow must pass through

    Requires a config loaded with resolve_secrets=False so the $VAR
    references are still visible.
    """
    pairs = []
    for secret in (config.azure.credentials, config.cluster.kubeconfig):
        value = secret.get_secret_value()
        if SecretResolver.is_secret_reference(value):
            env_var = value[1:].strip("{}")
            pairs.append((env_var, env_var))
    return pairs


def render_workflow(
    config: PipelineConfig,
    config_path: str = "deploy.yaml",
    install_spec: str = "aksdeploy",
    python_version: str = "3.12"
) -> str:
    """Render the workflow YAML for ``config``"""
    template = _create_jinja_env().get_template(TEMPLATE_NAME)
    return template.render(
        version=__version__,
        workflow_name=f"Deploy {config.image.repository} to AKS",
        triggers=config.triggers,
        python_version=python_version,
        install_spec=install_spec,
        image_name=config.image_name,
        config_path=config_path,
        secrets=secret_env_vars(config),
    )


def write_workflow(content: str, output: Optional[Path] = None, force: bool = False) -> Path:
    """Write the workflow file, refusing to overwrite unless forced

    Raises:
        AksDeployError: If the file exists and force is not set
    """
    output = output or DEFAULT_WORKFLOW_PATH
    if output.exists() and not force:
        raise AksDeployError(
            f"Workflow file '{output}' already exists",
            "Pass --force to overwrite it"
        )
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(content)
    return output
