"""Image step: build and push the commit-tagged container image"""

import logging

from aksdeploy.engine.context import PipelineContext
from aksdeploy.engine.runner import CommandRunner
from aksdeploy.steps.base import PipelineStep

logger = logging.getLogger(__name__)


class BuildAndPushStep(PipelineStep):
    """docker build + docker push of <registry>/<repository>:<commit-sha>"""

    name = "build-and-push"
    description = "Build and push image"

    def run(self, ctx: PipelineContext, runner: CommandRunner) -> None:
        config = ctx.config
        image = ctx.image_reference
        build_context = config.resolve_path(config.image.context)

        build_cmd = [
            "docker", "build", str(build_context),
            "-f", str(build_context / config.image.dockerfile),
            "-t", image,
        ]
        for key, value in sorted(config.image.build_args.items()):
            build_cmd.extend(["--build-arg", f"{key}={value}"])

        runner.run(build_cmd)
        runner.run(["docker", "push", image])

        ctx.pushed_image = image
        logger.info("Pushed %s", image)
