# src/runscripts/services/runner/execution.py
from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Callable, List, Optional

from runscripts.config.const import SHELL_BASH, SHELL_SYSTEM
from runscripts.core.runtime import DEFAULT_TEMP_DIR, TempDir, TempFile, short_id
from runscripts.services.runner.shell import resolve_script_shell

IS_WINDOWS = os.name == "nt"


@dataclass(frozen=True, slots=True)
class ScriptExecutor:
    argv: List[str]
    cleanup: Callable[[], None]


def _create_windows_batch_file(temp_dir: TempDir, command: str) -> TempFile:
    return temp_dir.create_file(f"{short_id(6)}.cmd", f"@echo off\r\n{command}\r\n")


def _create_shell_script(temp_dir: TempDir, command: str) -> TempFile:
    return temp_dir.create_file(f"{short_id(6)}.sh", command, mode=0o755)


def create_script_executor(command: str, shell: Optional[str] = None, *, temp_dir: Optional[TempDir] = None) -> ScriptExecutor:
    """
    Материализует текст команды во временный файл и возвращает argv для запуска.
    cleanup() удаляет файл; вызывается после выхода процесса.
    Ошибки записи файла пробрасываются как есть (OSError).
    """
    shell = resolve_script_shell(shell)
    temp_dir = temp_dir or DEFAULT_TEMP_DIR

    if shell == SHELL_BASH:
        script = _create_shell_script(temp_dir, command)
        return ScriptExecutor(argv=["bash", str(script.path)], cleanup=script.cleanup)

    if shell == SHELL_SYSTEM:
        if IS_WINDOWS:
            script = _create_windows_batch_file(temp_dir, command)
            return ScriptExecutor(argv=["cmd", "/d", "/s", "/c", "call", str(script.path)], cleanup=script.cleanup)
        script = _create_shell_script(temp_dir, command)
        return ScriptExecutor(argv=["sh", str(script.path)], cleanup=script.cleanup)

    raise AssertionError(f"unhandled shell option: {shell}")
