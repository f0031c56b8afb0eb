"""Source checkout step: locate the build context and the commit identifier"""

import logging
import os
import re

from aksdeploy.engine.context import PipelineContext
from aksdeploy.engine.runner import CommandRunner
from aksdeploy.exceptions import AksDeployError
from aksdeploy.steps.base import PipelineStep

logger = logging.getLogger(__name__)

# Docker tag grammar
TAG_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$")

DRY_RUN_SHA = "0000000000000000000000000000000000000000"


class SourceCheckoutStep(PipelineStep):
    """Resolve the commit SHA used as the immutable image tag

    Checkout itself is external (CI runner or developer working tree). The
    SHA comes from, in order: an explicit value, $GITHUB_SHA, then
    `git rev-parse HEAD` in the build context.
    """

    name = "checkout"
    description = "Resolve build context and commit SHA"

    def __init__(self, sha: str = None):
        self.sha = sha

    def run(self, ctx: PipelineContext, runner: CommandRunner) -> None:
        config = ctx.config

        build_context = config.resolve_path(config.image.context)
        if not build_context.is_dir():
            raise AksDeployError(
                f"Build context '{build_context}' does not exist",
                "Check image.context in deploy.yaml"
            )

        dockerfile = build_context / config.image.dockerfile
        if not dockerfile.is_file():
            raise AksDeployError(
                f"Dockerfile '{dockerfile}' not found",
                "Check image.dockerfile in deploy.yaml (relative to image.context)"
            )

        sha = self.sha or (ctx.commit_sha if ctx.has_commit_sha else None) or os.environ.get("GITHUB_SHA")
        if not sha:
            result = runner.run(
                ["git", "-C", str(build_context), "rev-parse", "HEAD"],
                dry_run_output=DRY_RUN_SHA
            )
            sha = result.stdout.strip()

        if not TAG_PATTERN.match(sha):
            raise AksDeployError(
                f"Commit identifier '{sha}' is not a valid image tag",
                "Pass a commit SHA with --sha or run inside a git checkout"
            )

        ctx.commit_sha = sha
        logger.info("Building commit %s", sha)
