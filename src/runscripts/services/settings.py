from __future__ import annotations
from dataclasses import dataclass, fields, replace
import os
from pathlib import Path
from typing import Dict, Optional

from dotenv import dotenv_values

from runscripts.config import const


def _read_env_file(path: str) -> Dict[str, str]:
    if not Path(path).is_file():
        return {}
    # KEY без значения dotenv отдаёт как None
    return {k: v for k, v in dotenv_values(path).items() if v is not None}


@dataclass(frozen=True, slots=True)
class Settings:
    # "false": последовательно; "true": как auto; иначе число/auto/unbounded/N%
    parallel: str = "false"
    shell: str = const.DEFAULT_SCRIPT_SHELL_OPTION
    log_level: str = "WARNING"
    log_dir: Optional[str] = None

    @staticmethod
    def from_sources(env_file: Optional[str] = ".env") -> "Settings":
        env_file_vars = _read_env_file(env_file) if env_file else {}

        def pick_env(key: str, default: Optional[str] = None) -> Optional[str]:
            return os.environ.get(key) or env_file_vars.get(key) or default

        return Settings(
            parallel=pick_env(const.ENV_PARALLEL, "false") or "false",
            shell=pick_env(const.ENV_SHELL, const.DEFAULT_SCRIPT_SHELL_OPTION) or const.DEFAULT_SCRIPT_SHELL_OPTION,
            log_level=pick_env(const.ENV_LOG_LEVEL, "WARNING") or "WARNING",
            log_dir=pick_env(const.ENV_LOG_DIR),
        )

    def with_overrides(self, **kw) -> "Settings":
        # перегружать можно только известные поля; None значит «не задано»
        known = {f.name for f in fields(self)}
        safe = {k: v for k, v in kw.items() if k in known and v is not None}
        return replace(self, **safe)

    def parallel_option(self):
        """Значение для run_scripts(parallel=...)."""
        value = self.parallel.strip().lower()
        if value in ("", "0", "false", "no", "off"):
            return False
        if value in ("true", "yes", "on"):
            return True
        return value
