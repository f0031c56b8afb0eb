"""CLI entry point for aksdeploy"""

import logging
import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from aksdeploy.exceptions import AksDeployError, PipelineFailedError

app = typer.Typer(
    name="aksdeploy",
    help="Build, push and deploy a container image to Azure Kubernetes Service",
    add_completion=False
)
console = Console()

ConfigOption = typer.Option(None, "--config", "-c", help="Path to deploy.yaml")
ShaOption = typer.Option(None, "--sha", help="Commit SHA used as image tag")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Show debug logs")

STATUS_STYLES = {
    "succeeded": "[green]✓ succeeded[/green]",
    "failed": "[red]✗ failed[/red]",
    "skipped": "[dim]- skipped[/dim]",
    "pending": "[dim]pending[/dim]",
}


def configure_logging(verbose: bool = False):
    """Route library logs through rich; DEBUG with --verbose, else WARNING"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True
    )


def handle_deploy_error(error: AksDeployError, exit_code: int = 1):
    """Handle aksdeploy errors with Rich formatting

    Args:
        error: Exception to handle
        exit_code: Exit code to use
    """
    if error.help_text:
        panel_content = f"{error.message}\n\n[bold cyan]Help:[/bold cyan]\n{error.help_text}"
    else:
        panel_content = error.message

    panel = Panel(
        panel_content,
        title="[bold red]Error[/bold red]",
        border_style="red",
        expand=False
    )

    console.print(panel)
    raise typer.Exit(exit_code)


def handle_unexpected_error(error: Exception, exit_code: int = 1):
    """Handle unexpected errors with Rich formatting

    Args:
        error: Exception to handle
        exit_code: Exit code to use
    """
    error_text = Text()
    error_text.append("✗ Unexpected Error: ", style="bold red")
    error_text.append(str(error))

    console.print(error_text)
    console.print("\n[yellow]This is an unexpected error. Please report this issue.[/yellow]")
    console.print(f"[dim]Error type: {type(error).__name__}[/dim]")

    raise typer.Exit(exit_code)


def print_step_summary(result):
    """Render a PipelineResult as a table"""
    table = Table(title="Pipeline Steps")
    table.add_column("#", style="dim")
    table.add_column("Step", style="cyan")
    table.add_column("Status")
    table.add_column("Duration", style="magenta")

    for index, step in enumerate(result.steps, 1):
        table.add_row(
            str(index),
            step.name,
            STATUS_STYLES.get(str(step.status), str(step.status)),
            f"{step.duration:.1f}s" if step.duration else ""
        )

    console.print(table)


def _run_pipeline(config_path: Optional[Path], sha: Optional[str], dry_run: bool):
    from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

    from aksdeploy.config import load_config
    from aksdeploy.engine.pipeline import DeployPipeline, should_run
    from aksdeploy.engine.preflight import check_runtime_dependencies, required_tools
    from aksdeploy.engine.runner import CommandRunner, default_log_dir

    config = load_config(config_path, resolve_secrets=not dry_run)

    if not should_run(config):
        console.print(
            f"[yellow]Event '{os.environ.get('GITHUB_EVENT_NAME')}' is not in triggers "
            f"({', '.join(config.triggers)}); nothing to deploy[/yellow]"
        )
        return None, None

    if not dry_run:
        check_runtime_dependencies(required_tools(needs_git=not (sha or os.environ.get("GITHUB_SHA"))))

    runner = CommandRunner(working_dir=config.base_dir, log_dir=default_log_dir(), dry_run=dry_run)
    pipeline = DeployPipeline(config, runner=runner, sha=sha)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True
    ) as progress:
        task = progress.add_task("Starting pipeline...", total=None)

        def update_progress(description: str):
            progress.update(task, description=description)

        result = pipeline.run(progress_callback=update_progress)

    return result, runner


@app.command()
def deploy(
    config: Optional[Path] = ConfigOption,
    sha: Optional[str] = ShaOption,
    dry_run: bool = typer.Option(False, "--dry-run", help="Print commands without running them"),
    verbose: bool = VerboseOption
):
    """Run the full pipeline: registry, image build/push, cluster deploy"""
    configure_logging(verbose)

    if dry_run:
        console.print("[yellow]Dry run - no commands will be executed[/yellow]")

    try:
        result, _ = _run_pipeline(config, sha, dry_run)
    except PipelineFailedError as e:
        if e.result is not None:
            print_step_summary(e.result)
        handle_deploy_error(e, e.exit_code)
    except AksDeployError as e:
        handle_deploy_error(e, e.exit_code)
    except Exception as e:
        handle_unexpected_error(e)

    if result is None:
        return

    print_step_summary(result)
    console.print(f"[green]✓[/green] Deployed {result.image}")


@app.command()
def plan(
    config: Optional[Path] = ConfigOption,
    sha: Optional[str] = ShaOption,
    verbose: bool = VerboseOption
):
    """Show the commands the pipeline would run (secrets masked)"""
    configure_logging(verbose)

    try:
        result, runner = _run_pipeline(config, sha, dry_run=True)
    except AksDeployError as e:
        handle_deploy_error(e, e.exit_code)
    except Exception as e:
        handle_unexpected_error(e)

    if result is None:
        return

    table = Table(title=f"Deployment Plan ({result.commit_sha})")
    table.add_column("Step", style="cyan")
    table.add_column("Command", style="white")

    for record in runner.history:
        table.add_row(record.step, record.command)

    console.print(table)
    console.print(f"Image: [green]{result.image}[/green]")


@app.command()
def validate(
    config: Optional[Path] = ConfigOption,
    sha: Optional[str] = typer.Option("validate", "--sha", help="Tag used for the image check")
):
    """Validate deploy.yaml, the Dockerfile and the manifests"""
    from aksdeploy import manifests
    from aksdeploy.config import load_config
    from aksdeploy.engine.context import PipelineContext
    from aksdeploy.steps.deploy import prepare_manifests

    console.print("[bold blue]Validating deployment configuration...[/bold blue]")

    try:
        pipeline_config = load_config(config, resolve_secrets=False)
        console.print("[green]✓[/green] deploy.yaml is valid")

        build_context = pipeline_config.resolve_path(pipeline_config.image.context)
        dockerfile = build_context / pipeline_config.image.dockerfile
        if not dockerfile.is_file():
            raise AksDeployError(
                f"Dockerfile '{dockerfile}' not found",
                "Check image.context and image.dockerfile in deploy.yaml"
            )
        console.print(f"[green]✓[/green] Dockerfile found: {dockerfile}")

        ctx = PipelineContext(pipeline_config)
        ctx.commit_sha = sha
        image = ctx.image_reference

        documents = prepare_manifests(ctx, image)
        console.print(f"[green]✓[/green] {len(documents)} Kubernetes object(s) parsed")

        # The tag pushed must be the tag deployed
        if image not in manifests.deployed_images(documents):
            raise AksDeployError(
                f"Manifests do not reference {image}",
                "Use the repository name or {{ image }} as container image in the manifests"
            )
        console.print(f"[green]✓[/green] Manifests deploy the pushed image ({image})")

    except AksDeployError as e:
        handle_deploy_error(e, e.exit_code)
    except Exception as e:
        handle_unexpected_error(e)

    console.print("[green]✓[/green] Validation passed")


@app.command()
def workflow(
    config: Optional[Path] = ConfigOption,
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Workflow file to write"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing workflow"),
    stdout: bool = typer.Option(False, "--stdout", help="Print instead of writing")
):
    """Generate a GitHub Actions workflow that runs `aksdeploy deploy` on push"""
    from aksdeploy.config import default_config_path, load_config
    from aksdeploy.workflow import render_workflow, write_workflow

    try:
        config_path = config or default_config_path()
        pipeline_config = load_config(config_path, resolve_secrets=False)
        content = render_workflow(pipeline_config, config_path=str(config_path))

        if stdout:
            typer.echo(content, nl=False)
            return

        written = write_workflow(content, output, force=force)
        console.print(f"[green]✓[/green] Workflow written to {written}")

    except AksDeployError as e:
        handle_deploy_error(e, e.exit_code)
    except Exception as e:
        handle_unexpected_error(e)


@app.command()
def vacuum():
    """Clean up secure directories left behind by killed runs

    Removes aksdeploy-secure-* directories older than 60 minutes from the
    temp root. They may contain kubeconfig and registry credentials.
    """
    from aksdeploy.utils.vacuum import VacuumCommand

    console.print("[bold blue]Cleaning up stale secure directories...[/bold blue]")

    VacuumCommand(console).execute()


@app.command()
def version():
    """Display CLI version"""
    import importlib.metadata

    from aksdeploy import __version__

    try:
        cli_version = importlib.metadata.version("aksdeploy")
    except importlib.metadata.PackageNotFoundError:
        cli_version = f"{__version__}-dev"

    console.print(f"aksdeploy [green]{cli_version}[/green]")


def main():
    app()


if __name__ == "__main__":
    main()
