# src/runscripts/config/const.py
from __future__ import annotations

# переменные окружения, которые получает каждый запущенный скрипт
ENV_PARALLEL_MAX = "RUNSCRIPTS_PARALLEL_MAX"
ENV_PARALLEL_RESOLVED = "RUNSCRIPTS_PARALLEL_RESOLVED"
ENV_SHELL_OPTION = "RUNSCRIPTS_SHELL_OPTION"

# настройки самого runscripts (ENV / .env)
ENV_PARALLEL = "RUNSCRIPTS_PARALLEL"
ENV_SHELL = "RUNSCRIPTS_SHELL"
ENV_LOG_LEVEL = "RUNSCRIPTS_LOG_LEVEL"
ENV_LOG_DIR = "RUNSCRIPTS_LOG_DIR"

PARALLEL_AUTO = "auto"
PARALLEL_UNBOUNDED = "unbounded"
PARALLEL_MAX_KEYWORDS: tuple[str, ...] = (PARALLEL_AUTO, PARALLEL_UNBOUNDED)

SHELL_SYSTEM = "system"
SHELL_BASH = "bash"
SCRIPT_SHELL_OPTIONS: tuple[str, ...] = (SHELL_SYSTEM, SHELL_BASH)
DEFAULT_SCRIPT_SHELL_OPTION = SHELL_SYSTEM

TEMP_DIR_NAME = "runscripts"
LOG_FILE_NAME = "runscripts.log"
