"""Export service - write the open database to a standalone JSON file."""

import logging
from datetime import datetime
from pathlib import Path

from storyguard.services.database_service import DatabaseService
from storyguard.utils.exceptions import ExportError
from storyguard.utils.file_io import atomic_write_json

logger = logging.getLogger(__name__)


def validate_export_path(path: Path) -> Path:
    """Resolve an export path and require a ``.json`` suffix.

    Raises:
        ExportError: If the suffix is wrong or the path is a directory.
    """
    resolved = Path(path).expanduser().resolve()
    if resolved.is_dir():
        raise ExportError(f"Export path {resolved} is a directory")
    if resolved.suffix.lower() != ".json":
        raise ExportError(f"Export path must end in .json, got {resolved.name}")
    return resolved


class ExportService:
    """Export databases as JSON files that ImportService can read back."""

    def __init__(self, database: DatabaseService):
        """Initialize ExportService.

        Args:
            database: Service owning the open database.
        """
        logger.debug("Initializing ExportService")
        self.database = database
        self.settings = database.settings

    def default_export_path(self) -> Path:
        """``<exports dir>/<dbName>_export_<timestamp>.json``."""
        stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        return self.settings.get_exports_directory() / (
            f"{self.database.current_name}_export_{stamp}.json"
        )

    def export_json(self, path: Path | str | None = None) -> Path:
        """Write the open database with export metadata.

        Args:
            path: Target file. Defaults to :meth:`default_export_path`.

        Returns:
            Path of the written file.

        Raises:
            ExportError: If the path is invalid or the file cannot be written.
        """
        target = validate_export_path(Path(path) if path else self.default_export_path())
        data = self.database.snapshot()
        data["metadata"] = {
            "databaseName": self.database.current_name,
            "backupTime": datetime.now().isoformat(),
            "backupType": "export",
        }
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            atomic_write_json(target, data)
        except OSError as e:
            raise ExportError(f"Could not write export {target}: {e}") from e
        logger.info("Exported database %s to %s", self.database.current_name, target)
        return target
