"""Sequential deployment pipeline with fail-fast semantics"""

import logging
import os
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Callable, List, Optional

from aksdeploy.config import PipelineConfig
from aksdeploy.engine.context import PipelineContext
from aksdeploy.engine.runner import CommandRunner, default_log_dir, exit_status
from aksdeploy.exceptions import AksDeployError, PipelineFailedError, describe_error
from aksdeploy.steps import (
    AzureLoginStep,
    BuildAndPushStep,
    CreatePullSecretStep,
    CreateRegistryStep,
    DeployManifestsStep,
    EnsureNamespaceStep,
    PipelineStep,
    RegistryLoginStep,
    SetClusterContextStep,
    SourceCheckoutStep,
)
from aksdeploy.utils.context_managers import SecureTempDir

logger = logging.getLogger(__name__)


class StepStatus(StrEnum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StepResult:
    """Outcome of one step"""
    name: str
    description: str
    status: StepStatus = StepStatus.PENDING
    duration: float = 0.0
    error: Optional[str] = None


@dataclass
class PipelineResult:
    """Outcome of a pipeline run"""
    steps: List[StepResult] = field(default_factory=list)
    commit_sha: Optional[str] = None
    image: Optional[str] = None
    exit_code: int = 0

    @property
    def succeeded(self) -> bool:
        return all(step.status == StepStatus.SUCCEEDED for step in self.steps)

    @property
    def failed_step(self) -> Optional[StepResult]:
        for step in self.steps:
            if step.status == StepStatus.FAILED:
                return step
        return None


def default_steps(sha: Optional[str] = None) -> List[PipelineStep]:
    """The nine deployment steps in execution order"""
    return [
        SourceCheckoutStep(sha),
        AzureLoginStep(),
        CreateRegistryStep(),
        RegistryLoginStep(),
        BuildAndPushStep(),
        SetClusterContextStep(),
        EnsureNamespaceStep(),
        CreatePullSecretStep(),
        DeployManifestsStep(),
    ]


def should_run(config: PipelineConfig, event_name: Optional[str] = None) -> bool:
    """Whether the triggering event is one the pipeline deploys on

    Outside CI (no event name) the pipeline always runs.
    """
    event_name = event_name if event_name is not None else os.environ.get("GITHUB_EVENT_NAME")
    if not event_name:
        return True
    return event_name in config.triggers


class DeployPipeline:
    """Run pipeline steps strictly in order

    Step N runs only if steps 1..N-1 succeeded. The first failure marks the
    remaining steps skipped and raises PipelineFailedError carrying the
    failing command's exit code. Nothing already created is rolled back.
    """

    def __init__(
        self,
        config: PipelineConfig,
        runner: Optional[CommandRunner] = None,
        steps: Optional[List[PipelineStep]] = None,
        sha: Optional[str] = None
    ):
        """Initialize pipeline

        Args:
            config: Validated deployment configuration
            runner: Command runner (defaults to one rooted at the config dir)
            steps: Steps to run (defaults to default_steps)
            sha: Commit SHA override
        """
        self.config = config
        self.runner = runner or CommandRunner(working_dir=config.base_dir, log_dir=default_log_dir())
        self.steps = steps if steps is not None else default_steps(sha)
        self.sha = sha
        self.context: Optional[PipelineContext] = None

    def run(self, progress_callback: Optional[Callable[[str], None]] = None) -> PipelineResult:
        """Execute every step

        Args:
            progress_callback: Called with a description before each step

        Returns:
            PipelineResult when every step succeeded

        Raises:
            PipelineFailedError: On the first failing step (``.result`` holds
                the partial PipelineResult)
        """
        result = PipelineResult(
            steps=[StepResult(step.name, step.description) for step in self.steps]
        )

        with SecureTempDir() as workdir:
            ctx = PipelineContext(self.config, workdir=workdir)
            if self.sha:
                ctx.commit_sha = self.sha
            self.context = ctx

            for index, (step, step_result) in enumerate(zip(self.steps, result.steps), 1):
                if progress_callback:
                    progress_callback(f"{step.description} ({index}/{len(self.steps)})...")

                self.runner.current_step = step.name
                logger.debug("Starting step %s", step.name)
                started = time.monotonic()

                try:
                    step.run(ctx, self.runner)
                except Exception as e:
                    step_result.duration = time.monotonic() - started
                    step_result.status = StepStatus.FAILED
                    step_result.error = self.runner.masker.mask(describe_error(e))

                    for later in result.steps[index:]:
                        later.status = StepStatus.SKIPPED

                    exit_code = exit_status(e.exit_code if isinstance(e, AksDeployError) else 1) or 1
                    result.exit_code = exit_code
                    self._fill_outputs(result, ctx)

                    # Tracebacks only for errors that are not ours
                    logger.debug(
                        "Step %s failed: %s", step.name, step_result.error,
                        exc_info=not isinstance(e, AksDeployError)
                    )
                    error = PipelineFailedError(step.name, e, exit_code=exit_code, result=result)
                    error.message = self.runner.masker.mask(error.message)
                    if error.help_text:
                        error.help_text = self.runner.masker.mask(error.help_text)
                    raise error from e

                step_result.duration = time.monotonic() - started
                step_result.status = StepStatus.SUCCEEDED

            self._fill_outputs(result, ctx)

        return result

    @staticmethod
    def _fill_outputs(result: PipelineResult, ctx: PipelineContext):
        if ctx.has_commit_sha:
            result.commit_sha = ctx.commit_sha
        result.image = ctx.deployed_image
