# src/runscripts/services/runner/shell.py
from __future__ import annotations
from typing import Optional

from runscripts.config.const import DEFAULT_SCRIPT_SHELL_OPTION, SCRIPT_SHELL_OPTIONS
from runscripts.errors import ShellOptionError


def validate_script_shell_option(shell: str) -> str:
    if shell not in SCRIPT_SHELL_OPTIONS:
        raise ShellOptionError(shell, SCRIPT_SHELL_OPTIONS)
    return shell


def resolve_script_shell(shell: Optional[str] = None) -> str:
    if not shell:
        return DEFAULT_SCRIPT_SHELL_OPTION
    return validate_script_shell_option(shell)
