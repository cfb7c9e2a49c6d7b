"""JSON file helpers shared by settings, databases and backups."""

import hashlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def atomic_write_json(path: Path | str, data: Any) -> None:
    """Write JSON to *path* atomically via a temp file + rename.

    Prevents partial writes from corrupting the target on disk failure,
    power loss, or process kill. The parent directory must exist.
    """
    path = Path(path)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.stem}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, str(path))
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError as cleanup_err:
            logger.warning("Failed to remove temp file %s: %s", tmp_path, cleanup_err)
        raise


def read_json_file(path: Path | str) -> Any:
    """Read and parse a UTF-8 JSON file.

    Raises:
        OSError: If the file cannot be read.
        json.JSONDecodeError: If the content is not valid JSON.
    """
    with open(path, encoding="utf-8-sig") as f:
        return json.load(f)


def canonical_digest(data: Any) -> str:
    """Return a sha256 hex digest of *data* serialized with sorted keys."""
    payload = json.dumps(data, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
