"""Utility modules."""
from api.utils.json_utils import (
    json_dump,
    json_load,
    read_json_file,
    write_json_file,
)
from api.utils.paths import payload_path, test_dir
from api.utils.time_utils import parse_iso_timestamp, utc_now
from api.utils.validation import validate_id

__all__ = [
    "json_dump",
    "json_load",
    "read_json_file",
    "write_json_file",
    "payload_path",
    "test_dir",
    "parse_iso_timestamp",
    "utc_now",
    "validate_id",
]
