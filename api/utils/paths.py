"""Path utilities for stored tests."""
from pathlib import Path

from api.config import DATA_DIR


def test_dir(test_id: str, data_dir: Path = DATA_DIR) -> Path:
    """Get directory for test."""
    return data_dir / test_id


def payload_path(test_id: str, data_dir: Path = DATA_DIR) -> Path:
    """Get path to test payload JSON."""
    return test_dir(test_id, data_dir) / "test.json"
