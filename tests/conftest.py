# tests/conftest.py
from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, List, Optional

import pytest

# 项目根目录 = tests 上一层目录
ROOT = Path(__file__).resolve().parents[1]

# 确保项目根在 sys.path 中，方便 `import huehunter` 等绝对导入
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

FAKE_SAMPLER = Path(__file__).resolve().parent / "fake_sampler.py"


@pytest.fixture
def fake_sampler_cmd() -> Callable[..., List[str]]:
    """
    fake_sampler_cmd("normal", record=path) -> argv for tests/fake_sampler.py
    """

    def _make(mode: str, record: Optional[Path] = None) -> List[str]:
        argv = [sys.executable, str(FAKE_SAMPLER), mode]
        if record is not None:
            argv.append(str(record))
        return argv

    return _make
