"""Pipeline context passed between steps"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from aksdeploy.config import PipelineConfig
from aksdeploy.exceptions import StepOrderError


@dataclass(frozen=True)
class RegistryCredentials:
    """Admin credentials of the container registry (never persisted)"""
    username: str
    password: str

    def __repr__(self) -> str:
        return f"RegistryCredentials(username={self.username!r}, password='***')"


class PipelineContext:
    """Mutable values produced by one step and consumed by later ones

    Reading a value before the step that produces it has run raises
    StepOrderError.
    """

    def __init__(self, config: PipelineConfig, workdir: Optional[Path] = None):
        """Initialize empty pipeline context

        Args:
            config: Validated deployment configuration
            workdir: Private temp directory for kubeconfig and docker config
        """
        self.config = config
        self.workdir = workdir
        self._commit_sha: Optional[str] = None
        self._credentials: Optional[RegistryCredentials] = None
        self._pushed_image: Optional[str] = None
        self._kubeconfig_path: Optional[Path] = None
        self.deployed_image: Optional[str] = None

    @property
    def commit_sha(self) -> str:
        if self._commit_sha is None:
            raise StepOrderError("commit SHA", "checkout")
        return self._commit_sha

    @commit_sha.setter
    def commit_sha(self, value: str):
        self._commit_sha = value

    @property
    def has_commit_sha(self) -> bool:
        return self._commit_sha is not None

    @property
    def credentials(self) -> RegistryCredentials:
        if self._credentials is None:
            raise StepOrderError("registry credentials", "create-registry")
        return self._credentials

    @credentials.setter
    def credentials(self, value: RegistryCredentials):
        self._credentials = value

    @property
    def image_reference(self) -> str:
        """Image the build step will produce (tagged with the commit SHA)"""
        return self.config.image_reference(self.commit_sha)

    @property
    def pushed_image(self) -> str:
        if self._pushed_image is None:
            raise StepOrderError("pushed image", "build-and-push")
        return self._pushed_image

    @pushed_image.setter
    def pushed_image(self, value: str):
        self._pushed_image = value

    @property
    def kubeconfig_path(self) -> Path:
        if self._kubeconfig_path is None:
            raise StepOrderError("kubeconfig", "set-context")
        return self._kubeconfig_path

    @kubeconfig_path.setter
    def kubeconfig_path(self, value: Path):
        self._kubeconfig_path = value

    def require_workdir(self) -> Path:
        if self.workdir is None:
            raise RuntimeError("Pipeline context has no private working directory")
        return self.workdir
