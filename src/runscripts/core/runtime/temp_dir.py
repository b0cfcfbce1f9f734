# src/runscripts/core/runtime/temp_dir.py
from __future__ import annotations
import os
import secrets
import shutil
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from runscripts.__version__ import __version__
from runscripts.config import const
from runscripts.core.runtime.on_exit import run_on_exit


def short_id(nbytes: int = 6) -> str:
    return secrets.token_urlsafe(nbytes)


def temp_base_dir() -> Path:
    return Path(tempfile.gettempdir()) / const.TEMP_DIR_NAME


@dataclass(frozen=True, slots=True)
class TempFile:
    path: Path
    cleanup: Callable[[], None]


class TempDir:
    """
    Каталог временных файлов процесса: <tmp>/runscripts/<version>/<id>.
    Создаётся при первом файле; удаляется целиком при выходе из процесса.
    """

    def __init__(self, parent: Optional[Path] = None) -> None:
        self.id = short_id(6)
        self._parent = Path(parent) if parent is not None else temp_base_dir() / __version__
        self.dir = self._parent / self.id
        self._lock = threading.Lock()
        self._initialized = False

    def initialize(self, clean: bool = False) -> None:
        with self._lock:
            if self._initialized and self.dir.exists():
                return
            self.dir.mkdir(parents=True, exist_ok=True)
            os.chmod(self.dir, 0o700)
            if clean:
                self._remove_stale_versions()
            if not self._initialized:
                run_on_exit(lambda _signum: self.cleanup())
            self._initialized = True

    def _remove_stale_versions(self) -> None:
        base = self._parent.parent
        for entry in base.iterdir():
            if entry.name != self._parent.name:
                shutil.rmtree(entry, ignore_errors=True)

    def create_file(self, name: str, content: str, mode: Optional[int] = None) -> TempFile:
        self.initialize()
        path = self.dir / name
        # newline="": содержимое пишем как есть (\r\n для .cmd задаёт вызывающий)
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        if mode is not None:
            os.chmod(path, mode)

        def _cleanup() -> None:
            try:
                path.unlink()
            except FileNotFoundError:
                pass

        return TempFile(path=path, cleanup=_cleanup)

    def cleanup(self) -> None:
        shutil.rmtree(self.dir, ignore_errors=True)


DEFAULT_TEMP_DIR = TempDir()
