"""Private working directory for credentials that exist only during a run"""

import atexit
import shutil
import signal
import tempfile
from pathlib import Path
from typing import Dict, Optional

SECURE_DIR_PREFIX = "aksdeploy-secure-"

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def write_private_file(directory: Path, name: str, content: str) -> Path:
    """Write ``content`` to ``directory/name`` readable by the owner only"""
    path = directory / name
    path.touch(mode=0o600)
    path.chmod(0o600)
    path.write_text(content)
    return path


def make_private_dir(directory: Path, name: str) -> Path:
    path = directory / name
    path.mkdir(mode=0o700, exist_ok=True)
    return path


class SecureTempDir:
    """0700 temp directory holding the kubeconfig and docker login state

    The directory is removed when the block exits, when it raises, on
    SIGINT/SIGTERM and at interpreter exit. Only SIGKILL leaves it behind;
    `aksdeploy vacuum` removes those.
    """

    def __init__(self, prefix: str = SECURE_DIR_PREFIX):
        self.prefix = prefix
        self.path: Optional[Path] = None
        self._previous_handlers: Dict[int, object] = {}
        self._atexit_registered = False

    def __enter__(self) -> Path:
        # mkdtemp creates the directory with mode 0700
        self.path = Path(tempfile.mkdtemp(prefix=self.prefix))

        if not self._atexit_registered:
            atexit.register(self._cleanup)
            self._atexit_registered = True

        for signum in HANDLED_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, self._signal_handler)

        return self.path

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._cleanup()
        self._restore_signal_handlers()
        return False

    def _cleanup(self):
        """Remove the directory; safe to call more than once"""
        if self.path is not None and self.path.exists():
            shutil.rmtree(self.path, ignore_errors=True)
        self.path = None

    def _signal_handler(self, signum, frame):
        self._cleanup()
        self._restore_signal_handlers()

        if signum == signal.SIGINT:
            raise KeyboardInterrupt
        raise SystemExit(128 + signum)

    def _restore_signal_handlers(self):
        while self._previous_handlers:
            signum, handler = self._previous_handlers.popitem()
            if handler is not None:
                signal.signal(signum, handler)
