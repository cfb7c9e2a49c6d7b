"""Automatic backups on a timer.

One daemon ``threading.Timer`` is armed at a time. Every tick saves the open
database and asks BackupService for an ``auto`` backup, then re-arms the
timer. Settings changes go through :meth:`AutoBackupScheduler.apply_settings`
so a restart never leaves two timers running.
"""

import logging
import threading
from datetime import datetime, timedelta
from pathlib import Path

from storyguard.services.backup_service import BackupService
from storyguard.services.database_service import DatabaseService
from storyguard.settings import DEFAULT_BACKUP_INTERVAL, MAX_BACKUP_INTERVAL
from storyguard.utils.exceptions import ConfigError, StoryGuardError
from storyguard.utils.validation import validate_in_range

logger = logging.getLogger(__name__)

# Seconds stop() waits for a backup that is already running
STOP_WAIT_SECONDS = 5.0


def effective_interval(value: object) -> int:
    """Return *value* as whole minutes, or the default when it is not a positive int."""
    try:
        minutes = int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        logger.warning("Invalid backup interval %r, using %d", value, DEFAULT_BACKUP_INTERVAL)
        return DEFAULT_BACKUP_INTERVAL
    if minutes < 1:
        logger.warning("Backup interval %r below 1, using %d", value, DEFAULT_BACKUP_INTERVAL)
        return DEFAULT_BACKUP_INTERVAL
    return minutes


class AutoBackupScheduler:
    """Runs periodic backups of the open database in a background timer."""

    def __init__(self, database: DatabaseService, backups: BackupService):
        """Initialize the scheduler.

        Args:
            database: Service owning the open database.
            backups: Service that writes the backup files.
        """
        self.database = database
        self.backups = backups
        self.settings = database.settings
        self._state_lock = threading.Lock()
        self._tick_lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._generation = 0
        self.last_backup_at: datetime | None = None
        self.next_backup_at: datetime | None = None
        self.backup_count = 0
        self.failure_count = 0
        logger.debug("AutoBackupScheduler initialized")

    @property
    def is_running(self) -> bool:
        """True while a timer is armed."""
        with self._state_lock:
            return self._timer is not None

    @property
    def interval_minutes(self) -> int:
        """Interval currently configured in settings."""
        return effective_interval(self.settings.backup_interval)

    def start(self) -> bool:
        """Arm the timer if auto-backup is enabled and it is not already running.

        Returns:
            True if the scheduler is running after the call.
        """
        if not self.settings.enable_auto_backup:
            logger.info("Auto-backup is disabled, not starting timer")
            return False
        with self._state_lock:
            if self._timer is not None:
                logger.debug("Auto-backup timer already running")
                return True
            self._generation += 1
            self._arm(self._generation)
        logger.info("Auto-backup started: every %d minutes", self.interval_minutes)
        return True

    def _arm(self, generation: int) -> None:
        """Start the next timer. Caller holds ``_state_lock``."""
        minutes = self.interval_minutes
        timer = threading.Timer(minutes * 60, self._on_timer, args=(generation,))
        timer.daemon = True
        timer.name = "storyguard-auto-backup"
        self._timer = timer
        self.next_backup_at = datetime.now() + timedelta(minutes=minutes)
        timer.start()

    def stop(self) -> None:
        """Cancel the timer and wait briefly for a running backup to finish."""
        with self._state_lock:
            timer = self._timer
            self._timer = None
            self._generation += 1
            self.next_backup_at = None
        if timer is None:
            return
        timer.cancel()
        if self._tick_lock.acquire(timeout=STOP_WAIT_SECONDS):
            self._tick_lock.release()
        else:
            logger.warning("Auto-backup still running after %.0fs, not waiting", STOP_WAIT_SECONDS)
        logger.info("Auto-backup stopped")

    def restart(self) -> bool:
        """Stop and start again so changed settings take effect."""
        self.stop()
        return self.start()

    def apply_settings(self, enable: bool, interval: int | None = None) -> bool:
        """Change the auto-backup settings, save them and restart the timer.

        Args:
            enable: Turn auto-backup on or off.
            interval: Minutes between backups. Values below 1 or that are not
                numbers fall back to the default.

        Returns:
            True if the scheduler is running afterwards.

        Raises:
            ConfigError: If the interval is longer than a day or the settings
                cannot be saved. The previous settings are kept.
        """
        minutes = self.settings.backup_interval
        if interval is not None:
            minutes = effective_interval(interval)
            try:
                validate_in_range(minutes, "backup_interval", 1, MAX_BACKUP_INTERVAL)
            except ValueError as e:
                raise ConfigError(str(e)) from e

        previous = (self.settings.enable_auto_backup, self.settings.backup_interval)
        self.settings.enable_auto_backup = bool(enable)
        self.settings.backup_interval = minutes
        try:
            self.settings.save()
        except (OSError, ValueError) as e:
            self.settings.enable_auto_backup, self.settings.backup_interval = previous
            raise ConfigError(f"Could not save auto-backup settings: {e}") from e
        logger.info(
            "Auto-backup settings changed: enabled=%s, interval=%d",
            self.settings.enable_auto_backup,
            self.settings.backup_interval,
        )
        return self.restart()

    def _on_timer(self, generation: int) -> None:
        with self._state_lock:
            if generation != self._generation:
                return
        self.run_now()
        with self._state_lock:
            # stop() or restart() bumped the generation while the tick ran
            if generation == self._generation and self._timer is not None:
                self._arm(generation)

    def run_now(self) -> Path | None:
        """Save the database and take an auto backup in the calling thread.

        Failures are logged and counted, never raised.

        Returns:
            Path of the backup, or None when skipped or failed.
        """
        with self._tick_lock:
            try:
                self.database.save()
                path = self.backups.create_backup(backup_type="auto")
            except (StoryGuardError, OSError, ValueError) as e:
                self.failure_count += 1
                logger.error("Auto-backup failed: %s", e)
                return None
            except Exception:
                self.failure_count += 1
                logger.exception("Unexpected error during auto-backup")
                return None
        if path is None:
            logger.debug("Auto-backup skipped by cooldown")
            return None
        self.backup_count += 1
        self.last_backup_at = datetime.now()
        logger.info("Auto-backup written: %s", path.name)
        return path
