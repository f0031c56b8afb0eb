"""Deployment configuration models for deploy.yaml"""

import os
from pathlib import Path
from typing import Dict, List, Literal, Optional

import yaml
from pydantic import (
    BaseModel,
    Field,
    SecretStr,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from aksdeploy.exceptions import ConfigNotFoundError, ConfigValidationError
from aksdeploy.secrets import SecretResolver

DEFAULT_CONFIG_PATH = Path("deploy.yaml")
CONFIG_ENV_VAR = "AKSDEPLOY_CONFIG"

# Secret fields are resolved only when the run actually needs them
SECRET_FIELDS = {"azure.credentials", "cluster.kubeconfig"}

DNS1123_LABEL = r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$"


def _resolve_secret_field(value, info: ValidationInfo, section: str):
    if isinstance(value, SecretStr):
        value = value.get_secret_value()
    context = info.context or {}
    if not context.get("resolve_secrets", True):
        return value
    return SecretResolver.resolve_secret(value, f"{section}.{info.field_name}")


class AzureConfig(BaseModel):
    """Azure service principal used for `az login`"""

    credentials: SecretStr = Field(
        default="$AZURE_CREDENTIALS",
        validate_default=True,
        description="Service principal JSON (clientId, clientSecret, tenantId, subscriptionId)"
    )

    @field_validator("credentials", mode="before")
    @classmethod
    def resolve_credentials(cls, v, info: ValidationInfo):
        return _resolve_secret_field(v, info, "azure")


class RegistryConfig(BaseModel):
    """Azure Container Registry to create and push to"""

    name: str = Field(
        ...,
        pattern=r"^[a-zA-Z0-9]{5,50}$",
        description="Registry name (5-50 alphanumeric characters)"
    )
    resource_group: str = Field(..., min_length=1, description="Resource group holding the registry")
    location: str = Field("North Europe", description="Azure region")
    sku: Literal["Basic", "Standard", "Premium"] = "Standard"
    admin_enabled: bool = True

    @property
    def login_server(self) -> str:
        return f"{self.name.lower()}.azurecr.io"


class ImageConfig(BaseModel):
    """Container image build settings"""

    repository: str = Field(
        ...,
        pattern=r"^[a-z0-9]+([._/-][a-z0-9]+)*$",
        description="Repository inside the registry (e.g. 'cluster')"
    )
    dockerfile: str = "Dockerfile"
    context: str = "."
    build_args: Dict[str, str] = Field(default_factory=dict)


class ClusterConfig(BaseModel):
    """AKS cluster access and target namespace"""

    kubeconfig: SecretStr = Field(
        default="$AKS_CLUSTER_KUBECONFIG",
        validate_default=True,
        description="Kubeconfig file content"
    )
    context: Optional[str] = Field(None, description="Kube context to select")
    namespace: str = Field("default", pattern=DNS1123_LABEL)
    pull_secret: str = Field(
        "registry-auth",
        max_length=253,
        pattern=r"^[a-z0-9]([-a-z0-9.]*[a-z0-9])?$",
        description="Name of the image-pull secret"
    )

    @field_validator("kubeconfig", mode="before")
    @classmethod
    def resolve_kubeconfig(cls, v, info: ValidationInfo):
        return _resolve_secret_field(v, info, "cluster")


class DeployConfig(BaseModel):
    """Manifest deployment settings"""

    manifests: List[str] = Field(..., min_length=1)
    rollout_timeout: int = Field(300, gt=0, description="Seconds to wait per rollout")
    wait_for_rollout: bool = True


class PipelineConfig(BaseModel):
    """Complete deployment configuration model for deploy.yaml"""

    triggers: List[str] = Field(default_factory=lambda: ["push"])
    azure: AzureConfig = Field(default_factory=AzureConfig)
    registry: RegistryConfig
    image: ImageConfig
    cluster: ClusterConfig = Field(default_factory=ClusterConfig)
    deploy: DeployConfig

    # Directory relative paths (context, dockerfile, manifests) are resolved against
    base_dir: Path = Field(default_factory=Path.cwd, exclude=True)

    @field_validator("triggers")
    @classmethod
    def validate_triggers(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("At least one trigger event is required")
        return v

    @property
    def image_name(self) -> str:
        """Registry-qualified repository without tag"""
        return f"{self.registry.login_server}/{self.image.repository}"

    def image_reference(self, tag: str) -> str:
        return f"{self.image_name}:{tag}"

    def resolve_path(self, value: str) -> Path:
        path = Path(value)
        return path if path.is_absolute() else self.base_dir / path


def default_config_path() -> Path:
    return Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH))


def load_config(path: Optional[Path] = None, resolve_secrets: bool = True) -> PipelineConfig:
    """Load and validate deploy.yaml

    Args:
        path: Config file (defaults to $AKSDEPLOY_CONFIG or ./deploy.yaml)
        resolve_secrets: Resolve $VAR references of secret fields. Disabled
            for commands that never talk to Azure or the cluster.

    Raises:
        ConfigNotFoundError: If the file doesn't exist
        ConfigValidationError: If YAML parsing or model validation fails
        MissingSecretError: If a referenced environment variable is unset
    """
    path = Path(path) if path else default_config_path()

    if not path.exists():
        raise ConfigNotFoundError(str(path))

    try:
        raw = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"{path} is not valid YAML ({e})")

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigValidationError(f"{path} must contain a mapping at the top level")

    raw = _resolve_plain_references(raw)
    # Sections with secret defaults must go through validation with the context
    raw.setdefault("azure", {})
    raw.setdefault("cluster", {})
    raw["base_dir"] = path.resolve().parent

    try:
        return PipelineConfig.model_validate(raw, context={"resolve_secrets": resolve_secrets})
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        ]
        raise ConfigValidationError(f"{len(errors)} validation error(s) in {path}", errors)


def _resolve_plain_references(raw: Dict) -> Dict:
    """Resolve $VAR references everywhere except the secret fields"""
    resolved = {}
    for section, value in raw.items():
        if isinstance(value, dict):
            resolved[section] = {
                key: item if f"{section}.{key}" in SECRET_FIELDS
                else SecretResolver.resolve_references(item, f"{section}.{key}")
                for key, item in value.items()
            }
        else:
            resolved[section] = SecretResolver.resolve_references(value, str(section))
    return resolved
