"""JSON file helpers for stored test payloads."""
import json
import os
from pathlib import Path


def json_dump(payload: object) -> str:
    """Serialize object to pretty JSON string."""
    return json.dumps(payload, ensure_ascii=False, indent=2)


def json_load(data: str) -> object:
    """Deserialize JSON string to object."""
    return json.loads(data)


def read_json_file(path: Path, default: object) -> object:
    """Read and parse JSON file, return default if it does not exist.

    Raises ValueError naming the file when the content is not valid JSON.
    """
    if not path.exists():
        return default
    try:
        return json_load(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"{path}: invalid JSON ({exc})") from exc


def write_json_file(path: Path, payload: object) -> None:
    """Write object as JSON; readers never see a half-written file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_text(json_dump(payload), encoding="utf-8")
    os.replace(tmp_path, path)
