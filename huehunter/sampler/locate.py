from __future__ import annotations

import logging
import os
import shlex
import shutil
import sys
from typing import List, Mapping, Optional, Sequence

log = logging.getLogger(__name__)

ENV_SAMPLER = "HUE_HUNTER_SAMPLER"
BINARY_NAME = "hue-hunter-sampler"


def binary_name(platform: str = sys.platform) -> str:
    return f"{BINARY_NAME}.exe" if platform.startswith("win") else BINARY_NAME


def bundled_sampler_command() -> List[str]:
    return [sys.executable, "-m", "huehunter.sampler"]


def resolve_sampler_command(
    configured: Optional[Sequence[str]] = None,
    *,
    env: Optional[Mapping[str, str]] = None,
) -> List[str]:
    """
    Pick the argv used to spawn the sampler, first match wins:

    1. $HUE_HUNTER_SAMPLER (shell-style string)
    2. the configured command from settings.json
    3. a native hue-hunter-sampler binary on PATH
    4. the bundled Python sampler (python -m huehunter.sampler)
    """
    env = os.environ if env is None else env

    raw = (env.get(ENV_SAMPLER) or "").strip()
    if raw:
        argv = shlex.split(raw, posix=not sys.platform.startswith("win"))
        if argv:
            log.info("sampler from $%s: %s", ENV_SAMPLER, argv)
            return argv

    if configured:
        argv = [str(x) for x in configured if str(x).strip()]
        if argv:
            log.info("sampler from settings: %s", argv)
            return argv

    native = shutil.which(binary_name(), path=env.get("PATH"))
    if native:
        log.info("sampler binary found on PATH: %s", native)
        return [native]

    argv = bundled_sampler_command()
    log.info("using bundled python sampler: %s", argv)
    return argv
