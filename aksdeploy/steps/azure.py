"""Azure steps: cloud login, registry provisioning and registry login"""

import json
import logging
from typing import List

from aksdeploy.engine.context import PipelineContext, RegistryCredentials
from aksdeploy.engine.runner import CommandRunner
from aksdeploy.exceptions import AksDeployError
from aksdeploy.secrets import parse_azure_credentials
from aksdeploy.steps.base import PipelineStep
from aksdeploy.utils.context_managers import make_private_dir

logger = logging.getLogger(__name__)

DRY_RUN_CREDENTIALS = json.dumps({
    "username": "<registry-username>",
    "passwords": [{"name": "password", "value": "<registry-password>"}],
})


class AzureLoginStep(PipelineStep):
    """Log in to Azure with a service principal"""

    name = "azure-login"
    description = "Authenticate to Azure"

    def run(self, ctx: PipelineContext, runner: CommandRunner) -> None:
        raw = ctx.config.azure.credentials.get_secret_value()

        if runner.dry_run and raw.startswith("$"):
            # Unresolved reference; plan output only needs the command shape
            creds = {
                "clientId": "<clientId>",
                "clientSecret": "<clientSecret>",
                "tenantId": "<tenantId>",
                "subscriptionId": "<subscriptionId>",
            }
        else:
            creds = parse_azure_credentials(raw)
            runner.masker.add(raw)
            runner.masker.add(creds["clientSecret"])

        runner.run([
            "az", "login", "--service-principal",
            "-u", creds["clientId"],
            "-p", creds["clientSecret"],
            "--tenant", creds["tenantId"],
            "--output", "none",
        ])
        runner.run(["az", "account", "set", "--subscription", creds["subscriptionId"]])


class CreateRegistryStep(PipelineStep):
    """Create the container registry and read its admin credentials

    `az acr create` is idempotent for an existing registry in the same
    resource group, so repeated runs reuse the registry.
    """

    name = "create-registry"
    description = "Provision container registry"

    def run(self, ctx: PipelineContext, runner: CommandRunner) -> None:
        registry = ctx.config.registry

        create_cmd = [
            "az", "acr", "create",
            "-n", registry.name,
            "-g", registry.resource_group,
            "--location", registry.location,
            "--sku", registry.sku,
            "--output", "none",
        ]
        if registry.admin_enabled:
            create_cmd.append("--admin-enabled")
        runner.run(create_cmd)

        result = runner.run(
            ["az", "acr", "credential", "show", "-n", registry.name, "--output", "json"],
            dry_run_output=DRY_RUN_CREDENTIALS,
            sensitive_output=True
        )
        # Both admin passwords are valid; mask them before anything can print them
        for password in self.admin_passwords(result.stdout):
            runner.masker.add(password)

        ctx.credentials = self.parse_credentials(result.stdout, registry.name)
        logger.info("Registry %s ready (user %s)", registry.login_server, ctx.credentials.username)

    @staticmethod
    def admin_passwords(output: str) -> List[str]:
        """Every password value in `az acr credential show` JSON ([] if unreadable)"""
        try:
            passwords = json.loads(output).get("passwords") or []
        except (json.JSONDecodeError, AttributeError):
            return []
        return [
            entry["value"] for entry in passwords
            if isinstance(entry, dict) and isinstance(entry.get("value"), str)
        ]

    @staticmethod
    def parse_credentials(output: str, registry_name: str) -> RegistryCredentials:
        """Extract username and first password from `az acr credential show` JSON"""
        try:
            data = json.loads(output)
            username = data["username"]
            password = data["passwords"][0]["value"]
        except (json.JSONDecodeError, KeyError, IndexError, TypeError):
            raise AksDeployError(
                f"Could not read admin credentials of registry '{registry_name}'",
                "Make sure registry.admin_enabled is true in deploy.yaml"
            )

        if not username or not password:
            raise AksDeployError(
                f"Registry '{registry_name}' returned empty admin credentials",
                "Make sure registry.admin_enabled is true in deploy.yaml"
            )

        return RegistryCredentials(username=username, password=password)


class RegistryLoginStep(PipelineStep):
    """Log docker in to the registry (password passed on stdin)"""

    name = "registry-login"
    description = "Log in to container registry"

    def run(self, ctx: PipelineContext, runner: CommandRunner) -> None:
        credentials = ctx.credentials
        workdir = ctx.workdir

        # Keep docker credentials out of the user's ~/.docker
        if workdir is not None:
            docker_config = make_private_dir(workdir, "docker")
            runner.set_env("DOCKER_CONFIG", str(docker_config))

        runner.run(
            [
                "docker", "login", ctx.config.registry.login_server,
                "-u", credentials.username,
                "--password-stdin",
            ],
            input=credentials.password
        )
