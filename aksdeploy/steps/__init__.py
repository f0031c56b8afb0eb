"""Pipeline steps in execution order"""

from aksdeploy.steps.base import PipelineStep
from aksdeploy.steps.source import SourceCheckoutStep
from aksdeploy.steps.azure import AzureLoginStep, CreateRegistryStep, RegistryLoginStep
from aksdeploy.steps.image import BuildAndPushStep
from aksdeploy.steps.cluster import (
    CreatePullSecretStep,
    EnsureNamespaceStep,
    SetClusterContextStep,
)
from aksdeploy.steps.deploy import DeployManifestsStep

__all__ = [
    "PipelineStep",
    "SourceCheckoutStep",
    "AzureLoginStep",
    "CreateRegistryStep",
    "RegistryLoginStep",
    "BuildAndPushStep",
    "SetClusterContextStep",
    "EnsureNamespaceStep",
    "CreatePullSecretStep",
    "DeployManifestsStep",
]
