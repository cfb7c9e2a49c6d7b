"""Services layer - business logic separated from the command line.

Every service works on the database opened by DatabaseService; the entity
services never touch files themselves.
"""

import logging
import time
from dataclasses import dataclass

from storyguard.settings import Settings

from .auto_backup import AutoBackupScheduler
from .backup_service import BackupService
from .book_analysis_service import BookAnalysisService
from .character_service import CharacterService
from .database_service import DatabaseService
from .export_service import ExportService
from .import_service import ImportService
from .location_service import LocationService
from .plot_service import PlotService
from .relationship_service import RelationshipService
from .statistics_service import StatisticsService
from .tag_service import TagService
from .timeline_service import TimelineService
from .world_service import WorldService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Dependency injection container for all services.

    Usage:
        settings = Settings.load()
        services = ServiceContainer(settings)

        services.characters.add_character("Harry", "Potter", series="Hogwarts")
        services.backup.create_backup()
    """

    settings: Settings
    database: DatabaseService
    characters: CharacterService
    locations: LocationService
    plots: PlotService
    world: WorldService
    relationships: RelationshipService
    tags: TagService
    timeline: TimelineService
    statistics: StatisticsService
    backup: BackupService
    auto_backup: AutoBackupScheduler
    import_svc: ImportService
    export: ExportService
    book_analysis: BookAnalysisService

    def __init__(self, settings: Settings | None = None):
        """Create and wire service instances that share a Settings object.

        Args:
            settings: Application settings shared by all services. Loaded
                from settings.json when omitted.
        """
        t0 = time.perf_counter()
        logger.info("Initializing ServiceContainer...")
        self.settings = settings or Settings.load()
        self.database = DatabaseService(self.settings)
        self.characters = CharacterService(self.database)
        self.locations = LocationService(self.database)
        self.plots = PlotService(self.database)
        self.world = WorldService(self.database)
        self.relationships = RelationshipService(self.database)
        self.tags = TagService(self.database)
        self.timeline = TimelineService(self.database)
        self.statistics = StatisticsService(self.database, self.relationships)
        self.backup = BackupService(self.database)
        # The scheduler shares BackupService so its cooldown covers manual backups too
        self.auto_backup = AutoBackupScheduler(self.database, self.backup)
        self.import_svc = ImportService(self.database)
        self.export = ExportService(self.database)
        self.book_analysis = BookAnalysisService(self.characters)
        service_count = len(self.__class__.__annotations__) - 1  # exclude 'settings'
        logger.info(
            "ServiceContainer initialized: %d services in %.2fs",
            service_count,
            time.perf_counter() - t0,
        )

    def shutdown(self) -> None:
        """Stop the auto-backup timer and save pending changes."""
        self.auto_backup.stop()
        if self.database.has_unsaved_changes:
            self.database.save()
        logger.info("Services shut down")


__all__ = [
    "AutoBackupScheduler",
    "BackupService",
    "BookAnalysisService",
    "CharacterService",
    "DatabaseService",
    "ExportService",
    "ImportService",
    "LocationService",
    "PlotService",
    "RelationshipService",
    "ServiceContainer",
    "StatisticsService",
    "TagService",
    "TimelineService",
    "WorldService",
]
