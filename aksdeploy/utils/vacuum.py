"""Removal of secure directories orphaned by killed pipeline runs"""

import shutil
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from aksdeploy.utils.context_managers import SECURE_DIR_PREFIX


@dataclass
class StaleDirectory:
    path: Path
    age_minutes: int


def find_stale_directories(temp_root: Path, max_age_minutes: int) -> List[StaleDirectory]:
    """aksdeploy-secure-* directories untouched for at least max_age_minutes

    A run in progress keeps writing to its directory, so only abandoned
    ones reach the age limit.
    """
    now = time.time()
    stale = []

    for path in sorted(temp_root.glob(f"{SECURE_DIR_PREFIX}*")):
        if not path.is_dir():
            continue
        age_minutes = int((now - path.stat().st_mtime) // 60)
        if age_minutes >= max_age_minutes:
            stale.append(StaleDirectory(path, age_minutes))

    return stale


class VacuumCommand:
    """`aksdeploy vacuum`: delete kubeconfigs and docker logins left by SIGKILL"""

    def __init__(self, console: Console, max_age_minutes: int = 60, temp_root: Optional[Path] = None):
        self.console = console
        self.max_age_minutes = max_age_minutes
        self.temp_root = temp_root or Path(tempfile.gettempdir())

    def execute(self) -> int:
        """Returns the number of directories removed"""
        stale = find_stale_directories(self.temp_root, self.max_age_minutes)
        if not stale:
            self.console.print("[green]✓[/green] No stale secure directories found")
            return 0

        table = Table(title=f"Stale Secure Directories in {self.temp_root}")
        table.add_column("Directory", style="yellow")
        table.add_column("Age (minutes)", style="cyan", justify="right")
        table.add_column("Holds credentials", style="red")
        for entry in stale:
            holds = [name for name in ("kubeconfig", "docker") if (entry.path / name).exists()]
            table.add_row(entry.path.name, str(entry.age_minutes), ", ".join(holds) or "-")
        self.console.print(table)

        removed = 0
        for entry in stale:
            shutil.rmtree(entry.path, ignore_errors=True)
            if entry.path.exists():
                self.console.print(f"[yellow]⚠[/yellow] Could not remove {entry.path.name}")
            else:
                removed += 1

        self.console.print(f"[green]✓[/green] Removed {removed}/{len(stale)} stale directories")
        return removed
