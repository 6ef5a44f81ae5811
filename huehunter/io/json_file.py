from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4


@dataclass(eq=False)
class JsonFileError(Exception):
    path: Path
    message: str
    cause: Optional[BaseException] = None

    def __str__(self) -> str:
        if self.cause is None:
            return f"{self.message} (path={self.path})"
        return f"{self.message} (path={self.path}); cause={type(self.cause).__name__}: {self.cause}"


class JsonReadError(JsonFileError):
    pass


class JsonWriteError(JsonFileError):
    pass


def ensure_dir(dir_path: Path) -> None:
    try:
        dir_path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise JsonWriteError(path=dir_path, message="cannot create directory", cause=e) from e


def read_json_object(path: Path) -> Dict[str, Any]:
    """
    Load a JSON object from `path`.

    A missing or blank file yields {}. Anything that is not a JSON object
    raises JsonReadError.
    """
    if not path.exists():
        return {}
    try:
        raw = path.read_text(encoding="utf-8").strip()
    except OSError as e:
        raise JsonReadError(path=path, message="cannot read file", cause=e) from e
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise JsonReadError(path=path, message="invalid JSON", cause=e) from e
    if not isinstance(data, dict):
        raise JsonReadError(path=path, message="JSON root must be an object")
    return data


def write_json_atomic(path: Path, data: Dict[str, Any], *, backup: bool = False) -> None:
    """
    Write `data` next to `path` under a temp name, then os.replace() it in.
    The previous file is copied to <name>.bak first when `backup` is set.
    """
    ensure_dir(path.parent)
    tmp_path = path.parent / f".{path.name}.{uuid4().hex}.tmp"
    try:
        payload = json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True)
        with open(tmp_path, "wb") as f:
            f.write(payload.encode("utf-8"))
            f.flush()
            os.fsync(f.fileno())
        if backup and path.exists():
            bak_path = path.with_suffix(path.suffix + ".bak")
            bak_path.write_bytes(path.read_bytes())
        os.replace(tmp_path, path)
    except (OSError, TypeError, ValueError) as e:
        raise JsonWriteError(path=path, message="atomic write failed", cause=e) from e
    finally:
        if tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError:
                pass
