# huehunter/logging_setup.py
from __future__ import annotations

import asyncio
import logging
import logging.handlers
import queue
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from huehunter.io.json_file import ensure_dir
from huehunter.logging_context import action_var, corr_id_var

LOG_FORMAT = (
    "%(asctime)s %(levelname)s "
    "[pid=%(process)d tid=%(thread)d] "
    "%(name)s:%(funcName)s:%(lineno)d "
    "corr=%(corr_id)s action=%(action)s - %(message)s"
)


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        # 注入上下文字段；保证 formatter 里引用时永远存在
        if not hasattr(record, "corr_id"):
            record.corr_id = corr_id_var.get()
        if not hasattr(record, "action"):
            record.action = action_var.get()
        return True


@dataclass
class LoggingRuntime:
    listener: logging.handlers.QueueListener

    def stop(self) -> None:
        try:
            self.listener.stop()
        except AttributeError:
            # already stopped
            pass


def setup_logging(
    *,
    log_dir: Path,
    level: str = "INFO",
    keep_days: int = 14,
    console: bool = False,
) -> LoggingRuntime:
    """
    Root logger gets a single QueueHandler; a QueueListener thread owns the
    file/console handlers so that the asyncio loop thread, the Qt thread and
    pynput listener threads never block on disk I/O.
    """
    ensure_dir(log_dir)

    log_q: queue.Queue[logging.LogRecord] = queue.Queue(maxsize=20_000)
    formatter = logging.Formatter(fmt=LOG_FORMAT)

    app_fh = logging.handlers.TimedRotatingFileHandler(
        filename=str(log_dir / "app.log"),
        when="midnight",
        backupCount=int(keep_days),
        encoding="utf-8",
    )
    app_fh.setLevel(logging.DEBUG)
    app_fh.setFormatter(formatter)

    err_fh = logging.handlers.TimedRotatingFileHandler(
        filename=str(log_dir / "error.log"),
        when="midnight",
        backupCount=int(keep_days),
        encoding="utf-8",
    )
    err_fh.setLevel(logging.ERROR)
    err_fh.setFormatter(formatter)

    handlers: list[logging.Handler] = [app_fh, err_fh]

    if console:
        ch = logging.StreamHandler(stream=sys.stderr)
        ch.setLevel(logging.DEBUG)
        ch.setFormatter(formatter)
        handlers.append(ch)

    # 上下文字段必须在产生日志的线程里取值，所以 filter 挂在 QueueHandler 上
    qh = logging.handlers.QueueHandler(log_q)
    qh.setLevel(logging.DEBUG)
    qh.addFilter(ContextFilter())

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    root.addHandler(qh)

    listener = logging.handlers.QueueListener(log_q, *handlers, respect_handler_level=True)
    listener.start()

    _install_global_exception_hooks()

    logging.getLogger(__name__).info("logging initialized", extra={"action": "boot"})
    return LoggingRuntime(listener=listener)


def _install_global_exception_hooks() -> None:
    log = logging.getLogger("unhandled")

    def excepthook(exc_type, exc, tb):
        log.critical("unhandled exception (main thread)", exc_info=(exc_type, exc, tb))

    sys.excepthook = excepthook

    def th_excepthook(args: threading.ExceptHookArgs):
        log.critical(
            "unhandled exception (thread %s)",
            getattr(args.thread, "name", "?"),
            extra={"action": "thread_excepthook"},
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
        )

    threading.excepthook = th_excepthook


def install_loop_exception_handler(loop: asyncio.AbstractEventLoop) -> None:
    """
    Route exceptions that escape asyncio callbacks/tasks into the log.
    """
    log = logging.getLogger("unhandled")

    def handler(_loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        exc = context.get("exception")
        msg = context.get("message", "unhandled exception (event loop)")
        if exc is not None:
            log.critical(msg, extra={"action": "loop_excepthook"}, exc_info=exc)
        else:
            log.critical(msg, extra={"action": "loop_excepthook"})

    loop.set_exception_handler(handler)
