"""Deploy step: apply the patched manifests and wait for rollouts"""

import logging

from aksdeploy import manifests
from aksdeploy.engine.context import PipelineContext
from aksdeploy.engine.runner import CommandRunner
from aksdeploy.exceptions import ManifestError
from aksdeploy.steps.base import PipelineStep

logger = logging.getLogger(__name__)


def template_variables(ctx: PipelineContext, image: str) -> dict:
    """Variables available to ``.j2`` manifest templates"""
    config = ctx.config
    return {
        "image": image,
        "image_repository": config.image_name,
        "tag": ctx.commit_sha,
        "namespace": config.cluster.namespace,
        "pull_secret": config.cluster.pull_secret,
        "registry_server": config.registry.login_server,
    }


def prepare_manifests(ctx: PipelineContext, image: str) -> list:
    """Load manifests and point them at ``image`` and the pull secret

    Raises:
        ManifestError: If files are invalid or no container uses our repository
    """
    config = ctx.config
    paths = [config.resolve_path(path) for path in config.deploy.manifests]

    documents = manifests.load_manifests(paths, template_variables(ctx, image))

    if manifests.patch_images(documents, image) == 0:
        raise ManifestError(
            ", ".join(config.deploy.manifests),
            f"no container uses repository '{config.image_name}'"
        )
    manifests.add_pull_secrets(documents, config.cluster.pull_secret)

    return documents


class DeployManifestsStep(PipelineStep):
    """kubectl apply of the manifests, then rollout status per workload"""

    name = "deploy"
    description = "Deploy manifests"

    def run(self, ctx: PipelineContext, runner: CommandRunner) -> None:
        config = ctx.config
        namespace = config.cluster.namespace
        image = ctx.pushed_image

        documents = prepare_manifests(ctx, image)

        runner.run(
            ["kubectl", "apply", "-n", namespace, "-f", "-"],
            input=manifests.dump_manifests(documents)
        )
        ctx.deployed_image = image

        if not config.deploy.wait_for_rollout:
            return

        timeout = config.deploy.rollout_timeout
        for target in manifests.rollout_targets(documents):
            runner.run(
                [
                    "kubectl", "rollout", "status", target,
                    "-n", namespace,
                    f"--timeout={timeout}s",
                ],
                # kubectl enforces its own timeout; this guards a hung client
                timeout=timeout + 30
            )
            logger.info("Rollout of %s complete", target)
