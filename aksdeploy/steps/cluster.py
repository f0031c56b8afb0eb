"""Cluster steps: kube context, namespace and image-pull secret"""

import base64
import json
import logging

import yaml

from aksdeploy.engine.context import PipelineContext
from aksdeploy.engine.runner import CommandRunner
from aksdeploy.exceptions import AksDeployError
from aksdeploy.secrets import kubeconfig_credentials
from aksdeploy.steps.base import PipelineStep
from aksdeploy.utils.context_managers import write_private_file

logger = logging.getLogger(__name__)


class SetClusterContextStep(PipelineStep):
    """Write the kubeconfig secret to the private workdir and export KUBECONFIG"""

    name = "set-context"
    description = "Acquire cluster context"

    def run(self, ctx: PipelineContext, runner: CommandRunner) -> None:
        cluster = ctx.config.cluster
        kubeconfig = cluster.kubeconfig.get_secret_value()

        if not (runner.dry_run and kubeconfig.startswith("$")):
            self.validate_kubeconfig(kubeconfig)
            runner.masker.add(kubeconfig)
            for credential in kubeconfig_credentials(kubeconfig):
                runner.masker.add(credential)

        workdir = ctx.require_workdir()
        if runner.dry_run:
            kubeconfig_path = workdir / "kubeconfig"
        else:
            kubeconfig_path = write_private_file(workdir, "kubeconfig", kubeconfig)

        ctx.kubeconfig_path = kubeconfig_path
        runner.set_env("KUBECONFIG", str(kubeconfig_path))

        if cluster.context:
            runner.run(["kubectl", "config", "use-context", cluster.context])

        result = runner.run(
            ["kubectl", "config", "current-context"],
            dry_run_output=cluster.context or "<current-context>"
        )
        logger.info("Using kube context %s", result.stdout.strip())

    @staticmethod
    def validate_kubeconfig(content: str):
        """Reject content that is not a kubeconfig document"""
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError:
            data = None

        if not isinstance(data, dict) or "clusters" not in data:
            raise AksDeployError(
                "Cluster kubeconfig is not a valid kubeconfig document",
                "Store the output of 'az aks get-credentials --file -' in the kubeconfig secret"
            )


class EnsureNamespaceStep(PipelineStep):
    """Create the target namespace unless it already exists"""

    name = "ensure-namespace"
    description = "Ensure namespace exists"

    def run(self, ctx: PipelineContext, runner: CommandRunner) -> None:
        namespace = ctx.config.cluster.namespace

        result = runner.run(["kubectl", "get", "namespace", namespace], check=False)
        if result.ok:
            logger.info("Namespace %s already exists", namespace)
            return

        runner.run(["kubectl", "create", "namespace", namespace])
        logger.info("Created namespace %s", namespace)


def build_pull_secret(name: str, namespace: str, server: str, username: str, password: str) -> dict:
    """Build a kubernetes.io/dockerconfigjson Secret manifest"""
    auth = base64.b64encode(f"{username}:{password}".encode()).decode()
    docker_config = {
        "auths": {
            server: {
                "username": username,
                "password": password,
                "auth": auth,
            }
        }
    }
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": name, "namespace": namespace},
        "type": "kubernetes.io/dockerconfigjson",
        "data": {
            ".dockerconfigjson": base64.b64encode(json.dumps(docker_config).encode()).decode(),
        },
    }


class CreatePullSecretStep(PipelineStep):
    """Create or update the image-pull secret for the registry

    The Secret is applied from stdin so the password never appears in argv.
    """

    name = "create-pull-secret"
    description = "Create image-pull secret"

    def run(self, ctx: PipelineContext, runner: CommandRunner) -> None:
        cluster = ctx.config.cluster
        credentials = ctx.credentials

        secret = build_pull_secret(
            name=cluster.pull_secret,
            namespace=cluster.namespace,
            server=ctx.config.registry.login_server,
            username=credentials.username,
            password=credentials.password,
        )
        runner.masker.add(secret["data"][".dockerconfigjson"])

        runner.run(
            ["kubectl", "apply", "-n", cluster.namespace, "-f", "-"],
            input=yaml.safe_dump(secret, sort_keys=False)
        )
        logger.info("Pull secret %s/%s applied", cluster.namespace, cluster.pull_secret)
