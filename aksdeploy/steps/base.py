"""Base pipeline step interface"""

from abc import ABC, abstractmethod

from aksdeploy.engine.context import PipelineContext
from aksdeploy.engine.runner import CommandRunner


class PipelineStep(ABC):
    """Abstract base class for pipeline steps

    A step reads what earlier steps left in the context, drives one or more
    external tools through the runner, and stores its own outputs back in
    the context. Any exception aborts the pipeline.
    """

    name: str = ""
    description: str = ""

    @abstractmethod
    def run(self, ctx: PipelineContext, runner: CommandRunner) -> None:
        """Execute the step

        Args:
            ctx: Pipeline context (mutable)
            runner: Shared command runner
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
