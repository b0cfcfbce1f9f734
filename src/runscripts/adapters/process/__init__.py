from .asyncio_launcher import AsyncioProcessHandle, AsyncioProcessLauncher, resolve_signal

__all__ = ["AsyncioProcessHandle", "AsyncioProcessLauncher", "resolve_signal"]
