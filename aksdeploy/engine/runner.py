"""Command runner for the external tools driven by pipeline steps"""

import logging
import os
import shlex
import subprocess
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from aksdeploy.exceptions import CommandFailedError
from aksdeploy.secrets import SecretMasker

logger = logging.getLogger(__name__)

LOG_DIR_ENV_VAR = "AKSDEPLOY_LOG_DIR"

TIMEOUT_EXIT_CODE = 124
NOT_FOUND_EXIT_CODE = 127


def default_log_dir() -> Path:
    """Per-user cache directory for execution logs

    Kept out of the repository so logs never end up in a docker build context.
    $AKSDEPLOY_LOG_DIR overrides it.
    """
    if os.environ.get(LOG_DIR_ENV_VAR):
        return Path(os.environ[LOG_DIR_ENV_VAR])
    cache_home = os.environ.get("XDG_CACHE_HOME") or Path.home() / ".cache"
    return Path(cache_home) / "aksdeploy" / "logs"


def exit_status(code: int) -> int:
    """Shell-style exit status (a process killed by signal N exits 128+N)"""
    return 128 - code if code < 0 else code


@dataclass
class CommandResult:
    """Result from command execution (stdout/stderr are unmasked)"""
    args: List[str]
    exit_code: int
    stdout: str
    stderr: str
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass
class CommandRecord:
    """Masked command line kept for plan output and audit"""
    step: str
    command: str
    dry_run: bool = False
    exit_code: Optional[int] = None


class CommandRunner:
    """Run external commands with shared environment, masking and logging

    One runner lives for the whole pipeline run. Steps add environment
    variables (KUBECONFIG, DOCKER_CONFIG) that every later command inherits.
    """

    def __init__(
        self,
        working_dir: Optional[Path] = None,
        masker: Optional[SecretMasker] = None,
        log_dir: Optional[Path] = None,
        dry_run: bool = False,
        env: Optional[Dict[str, str]] = None
    ):
        """Initialize command runner

        Args:
            working_dir: Working directory for commands (defaults to current dir)
            masker: Secret masker applied to everything shown or logged
            log_dir: Directory for per-command logs, relative to working_dir
                unless absolute (None disables file logs, see default_log_dir)
            dry_run: Record commands without executing them
            env: Extra environment variables on top of os.environ
        """
        self.working_dir = working_dir or Path.cwd()
        self.masker = masker if masker is not None else SecretMasker()
        self.log_dir = self.working_dir / log_dir if log_dir is not None else None
        self.dry_run = dry_run
        self.env: Dict[str, str] = dict(env or {})
        self.history: List[CommandRecord] = []
        self.current_step = "pipeline"

        if self.log_dir is not None and not self.dry_run:
            self.log_dir.mkdir(parents=True, exist_ok=True)

    def set_env(self, name: str, value: str):
        """Export a variable to every later command"""
        self.env[name] = value

    def format_command(self, args: Sequence[str]) -> str:
        """Masked, shell-quoted command line"""
        return self.masker.mask(shlex.join(str(arg) for arg in args))

    def run(
        self,
        args: Sequence[str],
        input: Optional[str] = None,
        check: bool = True,
        timeout: Optional[int] = None,
        dry_run_output: str = "",
        sensitive_output: bool = False
    ) -> CommandResult:
        """Execute a command and wait for it

        Args:
            args: Command and arguments (never run through a shell)
            input: Text fed to stdin (used for passwords and manifests)
            check: Raise CommandFailedError on non-zero exit
            timeout: Seconds before the command is killed
            dry_run_output: Stdout returned in dry-run mode
            sensitive_output: Stdout carries credentials; keep it out of the log

        Returns:
            CommandResult with exit code, stdout, stderr

        Raises:
            CommandFailedError: If check is set and the command exits non-zero
        """
        args = [str(arg) for arg in args]
        command = self.format_command(args)

        if self.dry_run:
            logger.debug("dry-run: %s", command)
            self.history.append(CommandRecord(self.current_step, command, dry_run=True, exit_code=0))
            return CommandResult(args=args, exit_code=0, stdout=dry_run_output, stderr="")

        logger.debug("run: %s", command)
        started = time.monotonic()

        try:
            completed = subprocess.run(
                args,
                cwd=self.working_dir,
                env={**os.environ, **self.env},
                input=input,
                capture_output=True,
                text=True,
                timeout=timeout
            )
            result = CommandResult(
                args=args,
                exit_code=exit_status(completed.returncode),
                stdout=completed.stdout or "",
                stderr=completed.stderr or "",
            )
        except subprocess.TimeoutExpired:
            result = CommandResult(
                args=args,
                exit_code=TIMEOUT_EXIT_CODE,
                stdout="",
                stderr=f"Command timed out after {timeout} seconds",
            )
        except FileNotFoundError:
            result = CommandResult(
                args=args,
                exit_code=NOT_FOUND_EXIT_CODE,
                stdout="",
                stderr=f"Executable '{args[0]}' not found",
            )

        result.duration = time.monotonic() - started
        self.history.append(CommandRecord(self.current_step, command, exit_code=result.exit_code))
        self._log_execution(result, sensitive_output)

        if check and not result.ok:
            raise CommandFailedError(command, result.exit_code, self.masker.mask(result.stderr))

        return result

    def _log_execution(self, result: CommandResult, sensitive_output: bool = False):
        """Log command execution details to persistent storage

        Args:
            result: Execution result (masked before writing)
            sensitive_output: Omit stdout entirely
        """
        if self.log_dir is None:
            return

        stdout = "(withheld: contains credentials)" if sensitive_output else self.masker.mask(result.stdout)
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
        tool = Path(result.args[0]).name if result.args else "command"
        log_path = self.log_dir / f"{timestamp}-{self.current_step}-{tool}.log"

        log_content = f"""
=== Command Execution Log ===
Timestamp: {datetime.now().isoformat()}
Step: {self.current_step}
Command: {self.format_command(result.args)}
Exit Code: {result.exit_code}
Duration: {result.duration:.2f}s

=== Environment Variables (Keys Only) ===
{", ".join(sorted(self.env)) or "(none)"}

=== STDOUT ===
{stdout}

=== STDERR ===
{self.masker.mask(result.stderr)}

=== End of Log ===
"""

        try:
            log_path.write_text(log_content)
        except OSError as e:
            # Don't fail execution if logging fails
            logger.warning("Failed to write execution log %s: %s", log_path, e)
