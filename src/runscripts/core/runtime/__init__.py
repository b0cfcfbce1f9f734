from .on_exit import run_on_exit
from .temp_dir import DEFAULT_TEMP_DIR, TempDir, TempFile, short_id

__all__ = ["run_on_exit", "DEFAULT_TEMP_DIR", "TempDir", "TempFile", "short_id"]
