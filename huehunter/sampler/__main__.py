# python -m huehunter.sampler
from __future__ import annotations

import logging
import queue
import sys

from huehunter.logging_setup import LOG_FORMAT, ContextFilter
from huehunter.sampler.server import SamplerServer, start_reader


def main() -> int:
    # stdout 是协议通道，日志只能写 stderr
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(ContextFilter())
    logging.basicConfig(level=logging.INFO, handlers=[handler])

    from huehunter.sampler.capture import MssGridCapture

    capture = MssGridCapture()
    commands: "queue.Queue[object]" = queue.Queue()
    start_reader(sys.stdin.buffer, commands)
    try:
        SamplerServer(capture, sys.stdout.buffer).serve(commands)
    except BrokenPipeError:
        return 0
    finally:
        capture.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
