# src/runscripts/core/runtime/on_exit.py
from __future__ import annotations
import atexit
import logging
import os
import signal
import threading
from typing import Callable, Optional

_log = logging.getLogger("runscripts.runtime")

# SIGINT не трогаем: KeyboardInterrupt и так доходит до atexit
_EXIT_SIGNALS = tuple(getattr(signal, name) for name in ("SIGTERM", "SIGHUP") if hasattr(signal, name))


def run_on_exit(fn: Callable[[Optional[int]], None]) -> Callable[[], None]:
    """
    Вызывает fn ровно один раз: при выходе интерпретатора (atexit) или по SIGTERM/SIGHUP.
    После сигнала восстанавливается обработчик по умолчанию и сигнал повторяется.
    Возвращает функцию для ручного запуска (тоже не больше одного раза).
    """
    lock = threading.Lock()
    state = {"ran": False}

    def run(signum: Optional[int] = None) -> None:
        with lock:
            if state["ran"]:
                return
            state["ran"] = True
        try:
            fn(signum)
        except Exception:
            _log.exception("on_exit.handler_failed")

    atexit.register(run)

    # обработчики сигналов ставятся только из главного потока
    if threading.current_thread() is threading.main_thread():
        for sig in _EXIT_SIGNALS:
            if signal.getsignal(sig) is not signal.SIG_DFL:
                # чужой обработчик не перехватываем
                continue

            def _handler(signum, frame):
                run(signum)
                signal.signal(signum, signal.SIG_DFL)
                os.kill(os.getpid(), signum)

            try:
                signal.signal(sig, _handler)
            except (ValueError, OSError):
                pass

    return run
