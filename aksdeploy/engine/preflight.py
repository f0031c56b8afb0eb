"""Runtime dependency checks run before the first pipeline step"""

import shutil
from typing import Iterable, List

from aksdeploy.exceptions import RuntimeDependencyError

PIPELINE_TOOLS = {
    "az": "Azure login and registry provisioning",
    "docker": "image build and push",
    "kubectl": "cluster deployment",
}


def required_tools(needs_git: bool = False) -> List[str]:
    tools = list(PIPELINE_TOOLS)
    if needs_git:
        tools.append("git")
    return tools


def check_runtime_dependencies(tools: Iterable[str]):
    """Fail fast if any tool is missing from PATH

    Checking up front keeps a missing kubectl from surfacing only after the
    image has been pushed.

    Raises:
        RuntimeDependencyError: For the first missing tool
    """
    for tool in tools:
        if shutil.which(tool) is None:
            raise RuntimeDependencyError(
                tool,
                required_for=PIPELINE_TOOLS.get(tool, "commit SHA lookup" if tool == "git" else None)
            )
