"""Shared fixtures: a deployable project on disk and a recording subprocess fake"""

import json
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest
import yaml

AZURE_CREDENTIALS = {
    "clientId": "11111111-1111-1111-1111-111111111111",
    "clientSecret": "sp-client-secret-value",
    "tenantId": "22222222-2222-2222-2222-222222222222",
    "subscriptionId": "33333333-3333-3333-3333-333333333333",
}

KUBECONFIG = """apiVersion: v1
kind: Config
clusters:
- name: aks-cluster
  cluster:
    server: https://aks-cluster.hcp.northeurope.azmk8s.io:443
contexts:
- name: aks-cluster
  context:
    cluster: aks-cluster
    user: clusterUser
current-context: aks-cluster
users:
- name: clusterUser
  user:
    token: kubeconfig-user-token-value
"""

REGISTRY_PASSWORD = "acr-admin-password-value"

COMMIT_SHA = "3f2c1a9e8b7d6c5f4e3d2c1b0a9f8e7d6c5b4a39"

DEPLOY_CONFIG = {
    "triggers": ["push"],
    "registry": {
        "name": "container12341",
        "resource_group": "container12341b7c7-rg",
        "location": "North Europe",
        "sku": "Standard",
    },
    "image": {"repository": "cluster"},
    "cluster": {"namespace": "default", "pull_secret": "clusterdockerauth"},
    "deploy": {"manifests": ["manifests/deployment.yml", "manifests/service.yml"]},
}

DEPLOYMENT_MANIFEST = {
    "apiVersion": "apps/v1",
    "kind": "Deployment",
    "metadata": {"name": "cluster"},
    "spec": {
        "replicas": 1,
        "selector": {"matchLabels": {"app": "cluster"}},
        "template": {
            "metadata": {"labels": {"app": "cluster"}},
            "spec": {
                "containers": [
                    {"name": "cluster", "image": "container12341.azurecr.io/cluster", "ports": [{"containerPort": 80}]},
                    {"name": "sidecar", "image": "envoyproxy/envoy:v1.29"},
                ]
            },
        },
    },
}

SERVICE_MANIFEST = {
    "apiVersion": "v1",
    "kind": "Service",
    "metadata": {"name": "cluster"},
    "spec": {"type": "LoadBalancer", "selector": {"app": "cluster"}, "ports": [{"port": 80}]},
}


class FakeSubprocess:
    """Stand-in for subprocess.run that records every call

    Responses are matched by command prefix; the longest matching prefix
    wins. Unmatched commands succeed with empty output.
    """

    def __init__(self):
        self.calls: List[Dict] = []
        self.responses: Dict[Tuple[str, ...], Tuple[int, str, str]] = {}

    def respond(self, prefix: List[str], returncode: int = 0, stdout: str = "", stderr: str = ""):
        self.responses[tuple(prefix)] = (returncode, stdout, stderr)

    def __call__(self, args, cwd=None, env=None, input=None, capture_output=False, text=False, timeout=None):
        self.calls.append({"args": list(args), "input": input, "env": dict(env or {}), "cwd": cwd})

        match: Optional[Tuple[str, ...]] = None
        for prefix in self.responses:
            if tuple(args[:len(prefix)]) == prefix and (match is None or len(prefix) > len(match)):
                match = prefix

        returncode, stdout, stderr = self.responses.get(match, (0, "", ""))
        return subprocess.CompletedProcess(args, returncode, stdout, stderr)

    @property
    def commands(self) -> List[List[str]]:
        return [call["args"] for call in self.calls]

    def find(self, *prefix: str) -> List[Dict]:
        return [call for call in self.calls if tuple(call["args"][:len(prefix)]) == prefix]


@pytest.fixture
def fake_subprocess(monkeypatch):
    """Replace subprocess.run inside the command runner"""
    fake = FakeSubprocess()
    fake.respond(
        ["az", "acr", "credential", "show"],
        stdout=json.dumps({
            "username": "container12341",
            "passwords": [
                {"name": "password", "value": REGISTRY_PASSWORD},
                {"name": "password2", "value": "second-password"},
            ],
        })
    )
    fake.respond(["kubectl", "config", "current-context"], stdout="aks-cluster\n")
    fake.respond(["git"], stdout=COMMIT_SHA + "\n")
    monkeypatch.setattr("aksdeploy.engine.runner.subprocess.run", fake)
    return fake


@pytest.fixture
def secrets_env(monkeypatch, tmp_path_factory):
    """Pipeline secrets exported the way GitHub Actions does"""
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path_factory.mktemp("cache")))
    monkeypatch.delenv("AKSDEPLOY_LOG_DIR", raising=False)
    monkeypatch.setenv("AZURE_CREDENTIALS", json.dumps(AZURE_CREDENTIALS))
    monkeypatch.setenv("AKS_CLUSTER_KUBECONFIG", KUBECONFIG)
    monkeypatch.delenv("GITHUB_SHA", raising=False)
    monkeypatch.delenv("GITHUB_EVENT_NAME", raising=False)
    monkeypatch.delenv("AKSDEPLOY_CONFIG", raising=False)


@pytest.fixture
def project(tmp_path, secrets_env) -> Path:
    """Repository with deploy.yaml, Dockerfile and two manifests"""
    (tmp_path / "deploy.yaml").write_text(yaml.safe_dump(DEPLOY_CONFIG))
    (tmp_path / "Dockerfile").write_text("FROM nginx:alpine\n")

    manifests = tmp_path / "manifests"
    manifests.mkdir()
    (manifests / "deployment.yml").write_text(yaml.safe_dump(DEPLOYMENT_MANIFEST))
    (manifests / "service.yml").write_text(yaml.safe_dump(SERVICE_MANIFEST))

    return tmp_path


@pytest.fixture
def config(project):
    from aksdeploy.config import load_config

    return load_config(project / "deploy.yaml")
