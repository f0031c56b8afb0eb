"""Secret resolution for environment variable references and output masking"""

import json
import os
from typing import Any, Dict, Iterable, List

import yaml

from aksdeploy.exceptions import ConfigValidationError, MissingSecretError

MASK = "***"

AZURE_CREDENTIAL_KEYS = ("clientId", "clientSecret", "tenantId", "subscriptionId")

# Kubeconfig user fields holding credential material
KUBECONFIG_CREDENTIAL_KEYS = {
    "token",
    "password",
    "client-key-data",
    "client-certificate-data",
    "client-secret",
    "access-token",
    "refresh-token",
    "id-token",
}


class SecretResolver:
    """Resolves environment variable references to actual secret values"""

    @staticmethod
    def is_secret_reference(value: Any) -> bool:
        """Check if value is an environment variable reference

        Args:
            value: Value to check

        Returns:
            True if value is a string starting with $
        """
        return isinstance(value, str) and value.startswith("$") and len(value) > 1

    @staticmethod
    def resolve_secret(reference: str, field: str = "unknown") -> str:
        """Resolve environment variable reference to actual value

        Args:
            reference: Environment variable reference (e.g., "$AZURE_CREDENTIALS")
            field: Field name for error reporting

        Returns:
            Resolved secret value from environment

        Raises:
            MissingSecretError: If environment variable is not set
        """
        if not SecretResolver.is_secret_reference(reference):
            return reference

        env_var = reference[1:].strip("{}")
        value = os.getenv(env_var)

        if value is None:
            raise MissingSecretError(env_var, field)

        return value

    @staticmethod
    def resolve_references(data: Any, path: str = "") -> Any:
        """Resolve every secret reference in a nested dict/list structure

        Args:
            data: Parsed YAML data
            path: Dotted path of ``data`` for error reporting

        Returns:
            New structure with references replaced by their values
        """
        if isinstance(data, dict):
            return {
                key: SecretResolver.resolve_references(value, f"{path}.{key}" if path else str(key))
                for key, value in data.items()
            }
        if isinstance(data, list):
            return [
                SecretResolver.resolve_references(item, f"{path}[{index}]")
                for index, item in enumerate(data)
            ]
        if SecretResolver.is_secret_reference(data):
            return SecretResolver.resolve_secret(data, path or "unknown")
        return data


class SecretMasker:
    """Replaces registered secret values in text before it is shown or logged"""

    def __init__(self, secrets: Iterable[str] = ()):
        self._secrets = set()
        for secret in secrets:
            self.add(secret)

    def add(self, value: str):
        """Register a value to be masked (blank values are ignored)"""
        if value and value.strip():
            self._secrets.add(value)

    def mask(self, text: str) -> str:
        """Return text with every registered secret replaced by ***"""
        if not text:
            return text
        # Longest first so a secret containing another is masked whole
        for secret in sorted(self._secrets, key=len, reverse=True):
            text = text.replace(secret, MASK)
        return text

    def __contains__(self, value: str) -> bool:
        return value in self._secrets

    def __len__(self) -> int:
        return len(self._secrets)


def parse_azure_credentials(raw: str) -> Dict[str, str]:
    """Parse a service principal credential blob (``az ad sp create-for-rbac --sdk-auth``)

    Raises:
        ConfigValidationError: If the blob is not JSON or lacks a required key
    """
    try:
        creds = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigValidationError(f"azure.credentials is not valid JSON ({e.msg})")

    if not isinstance(creds, dict):
        raise ConfigValidationError("azure.credentials must be a JSON object")

    missing = [key for key in AZURE_CREDENTIAL_KEYS if not creds.get(key)]
    if missing:
        raise ConfigValidationError(
            "azure.credentials is missing required keys",
            [f"azure.credentials.{key}: field required" for key in missing]
        )

    return {key: str(creds[key]) for key in AZURE_CREDENTIAL_KEYS}


def kubeconfig_credentials(content: str) -> List[str]:
    """Credential values found under the ``users`` section of a kubeconfig

    Only these are masked; structural lines such as ``kind: Config`` stay
    readable in kubectl output.
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError:
        return []
    if not isinstance(data, dict):
        return []

    values = []

    def collect(node):
        if isinstance(node, dict):
            for key, value in node.items():
                if key in KUBECONFIG_CREDENTIAL_KEYS and isinstance(value, str):
                    values.append(value)
                else:
                    collect(value)
        elif isinstance(node, list):
            for item in node:
                collect(item)

    collect(data.get("users"))
    return values
