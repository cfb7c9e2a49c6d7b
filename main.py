#!/usr/bin/env python3
"""StoryGuard - character, plot and world notes for fiction writers.

Keeps named story databases (JSON files) of characters, locations, plots,
world-building elements and relationships, with backups, import/export and
character extraction from manuscripts.

Usage:
    python main.py db list                      # List databases
    python main.py character add Harry Potter   # Add a character
    python main.py backup create                # Back up the current database
    python main.py analyze book.docx --add      # Extract characters from a manuscript
"""

import argparse
import logging
import sys
import time

from storyguard.settings import LOG_LEVELS
from storyguard.utils.exceptions import StoryGuardError
from storyguard.utils.logging_config import log_context, setup_logging

logger = logging.getLogger(__name__)


def _print_table(rows: list[tuple], headers: tuple) -> None:
    widths = [
        max(len(str(value)) for value in column) for column in zip(headers, *rows, strict=False)
    ]
    print("  ".join(str(h).ljust(w) for h, w in zip(headers, widths, strict=True)))
    print("  ".join("-" * w for w in widths))
    for row in rows:
        print("  ".join(str(v).ljust(w) for v, w in zip(row, widths, strict=True)))


# ========== db ==========


def cmd_db(services, args: argparse.Namespace) -> int:
    """Manage database files."""
    database = services.database
    if args.db_command == "list":
        current = database.current_name
        rows = [
            (
                "*" if info.name == current else "",
                info.name,
                f"{info.size / 1024:.1f} KB",
                info.modified.strftime("%Y-%m-%d %H:%M"),
            )
            for info in database.list_databases()
        ]
        if not rows:
            print(f"No databases in {database.directory}")
            return 0
        _print_table(rows, ("", "Name", "Size", "Modified"))
    elif args.db_command == "create":
        database.create_database(args.name)
        print(f"Created database {args.name}")
        if args.open:
            database.open_database(args.name)
            print(f"Opened database {args.name}")
    elif args.db_command == "open":
        database.open_database(args.name)
        print(f"Opened database {args.name}")
    elif args.db_command == "rename":
        database.rename_database(args.old_name, args.new_name)
        print(f"Renamed database {args.old_name} to {args.new_name}")
    elif args.db_command == "delete":
        if args.name.lower() == "default" and not args.force:
            print("Refusing to delete the Default database without --force")
            return 1
        database.delete_database(args.name)
        print(f"Deleted database {args.name}")
    return 0


# ========== character ==========


def cmd_character(services, args: argparse.Namespace) -> int:
    """List, add and delete characters."""
    characters = services.characters
    if args.character_command == "list":
        found = characters.filter_characters(series=args.series, book=args.book, role=args.role)
        if args.query:
            ids = {c.id for c in characters.search_characters(args.query)}
            found = [c for c in found if c.id in ids]
        if not found:
            print("No characters found")
            return 0
        _print_table(
            [(c.full_name, c.role, c.series, c.book, c.id) for c in found],
            ("Name", "Role", "Series", "Book", "Id"),
        )
    elif args.character_command == "add":
        fields = {
            key: value
            for key in ("title", "sex", "race", "series", "book", "role", "notes")
            if (value := getattr(args, key))
        }
        character = characters.add_character(args.first_name, args.last_name or "", **fields)
        print(f"Added {character.full_name} ({character.id})")
    elif args.character_command == "delete":
        target = characters.find_by_name(args.character)
        character_id = target.id if target is not None else args.character
        deleted = characters.delete_character(character_id)
        print(f"Deleted {deleted.full_name}")
    return 0


# ========== backup ==========


def cmd_backup(services, args: argparse.Namespace) -> int:
    """Create, list, verify, restore and delete backups."""
    backup = services.backup
    if args.backup_command == "create":
        services.database.save()
        path = backup.create_backup(force=args.force)
        if path is None:
            print("Skipped: a backup was made moments ago (use --force)")
        else:
            print(f"Backup created: {path}")
    elif args.backup_command == "list":
        backups = backup.list_backups(None if args.all else services.database.current_name)
        if not backups:
            print("No backups found")
            return 0
        _print_table(
            [
                (
                    b.filename,
                    b.backup_type,
                    b.created_at.strftime("%Y-%m-%d %H:%M:%S"),
                    b.counts.get("characters", 0),
                )
                for b in backups
            ],
            ("File", "Type", "Created", "Characters"),
        )
    elif args.backup_command == "verify":
        result = backup.verify_backup(args.filename)
        print("Valid" if result.valid else "INVALID")
        for error in result.errors:
            print(f"  error: {error}")
        for warning in result.warnings:
            print(f"  warning: {warning}")
        return 0 if result.valid else 1
    elif args.backup_command == "restore":
        target = backup.restore_backup(args.filename, as_new_name=args.as_name)
        print(f"Restored {args.filename} into database {target}")
    elif args.backup_command == "delete":
        if not backup.delete_backup(args.filename):
            print(f"Backup not found: {args.filename}")
            return 1
        print(f"Deleted backup {args.filename}")
    return 0


def cmd_autobackup(services, args: argparse.Namespace) -> int:
    """Configure or run automatic backups."""
    scheduler = services.auto_backup
    if args.disable:
        scheduler.apply_settings(False)
        print("Auto-backup disabled")
        return 0
    if args.once:
        path = scheduler.run_now()
        print(f"Backup created: {path}" if path else "No backup written (see log)")
        return 0 if scheduler.failure_count == 0 else 1

    scheduler.apply_settings(True, args.interval)
    print(
        f"Auto-backup every {scheduler.interval_minutes} minutes "
        f"for database {services.database.current_name}. Press Ctrl+C to stop."
    )
    try:
        while scheduler.is_running:
            time.sleep(1)
    except KeyboardInterrupt:
        print()
    finally:
        scheduler.stop()
    print(f"Backups written: {scheduler.backup_count}, failures: {scheduler.failure_count}")
    return 0


# ========== import / export ==========


def cmd_import(services, args: argparse.Namespace) -> int:
    """Import an exported database file."""
    data = services.import_svc.load_file(args.file)
    if args.as_name:
        services.import_svc.import_as_new(data, args.as_name)
        print(f"Imported {args.file} as database {args.as_name}")
    else:
        result = services.import_svc.merge_into_current(data)
        print(result.summary())
    return 0


def cmd_export(services, args: argparse.Namespace) -> int:
    """Export the current database to JSON."""
    path = services.export.export_json(args.path)
    print(f"Exported to {path}")
    return 0


# ========== stats / timeline / analyze ==========


def cmd_stats(services, args: argparse.Namespace) -> int:
    """Print database statistics and relationship network insights."""
    stats = services.statistics.summary(series=args.series)
    print(f"Database: {stats.database_name}")
    for key, value in stats.counts.items():
        print(f"  {key.replace('_', ' ').title()}: {value}")
    for label, distribution in (
        ("Series", stats.series_distribution),
        ("Roles", stats.role_distribution),
        ("Relationship types", stats.relationship_types),
    ):
        if distribution:
            print(f"\n{label}:")
            for value, count in distribution.items():
                print(f"  {value}: {count}")
    if stats.network.has_data:
        print("\nNetwork insights:")
        for insight in stats.network.insights:
            print(f"  - {insight}")
    return 0


def cmd_timeline(services, args: argparse.Namespace) -> int:
    """Print the series/book timeline."""
    timeline = services.timeline.build(series=args.series, book=args.book, character=args.character)
    if not timeline:
        print("Nothing on the timeline yet (characters and plots need a book)")
        return 0
    for series in timeline:
        print(f"{series.name} ({series.event_count} events)")
        for book in series.books:
            print(f"  {book.title}")
            for event in book.events:
                chapter = f" [ch. {event.chapter}]" if event.chapter else ""
                print(f"    - {event.title}{chapter}")
    return 0


def cmd_analyze(services, args: argparse.Namespace) -> int:
    """Extract character names from a manuscript."""
    result = services.book_analysis.analyze_file(args.file, min_mentions=args.min_mentions)
    print(f"{result.source}: {result.word_count} words, {len(result.names)} probable characters")
    if result.names:
        _print_table(
            [(n.name, n.mentions, ", ".join(n.variants)) for n in result.names],
            ("Name", "Mentions", "Variants"),
        )
    if args.add and result.names:
        added, skipped = services.book_analysis.add_to_database(
            result.names, series=args.series or "", book=args.book or ""
        )
        print(f"Added {added} characters, skipped {skipped} already present")
    return 0


COMMANDS = {
    "db": cmd_db,
    "character": cmd_character,
    "backup": cmd_backup,
    "autobackup": cmd_autobackup,
    "import": cmd_import,
    "export": cmd_export,
    "stats": cmd_stats,
    "timeline": cmd_timeline,
    "analyze": cmd_analyze,
}


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        description="StoryGuard - character, plot and world notes for fiction writers"
    )
    parser.add_argument(
        "--log-level",
        choices=list(LOG_LEVELS),
        default=None,
        help="Logging level (default: the log_level setting)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default="default",
        help="Log file path (default: output/logs/storyguard.log, use 'none' to disable)",
    )
    parser.add_argument(
        "--database",
        metavar="NAME",
        help="Open this database before running the command",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    db = sub.add_parser("db", help="Manage databases")
    db_sub = db.add_subparsers(dest="db_command", required=True)
    db_sub.add_parser("list", help="List databases")
    create = db_sub.add_parser("create", help="Create a database")
    create.add_argument("name")
    create.add_argument("--open", action="store_true", help="Open it after creating")
    db_sub.add_parser("open", help="Make a database current").add_argument("name")
    rename = db_sub.add_parser("rename", help="Rename a database")
    rename.add_argument("old_name")
    rename.add_argument("new_name")
    delete = db_sub.add_parser("delete", help="Delete a database")
    delete.add_argument("name")
    delete.add_argument("--force", action="store_true", help="Allow deleting Default")

    character = sub.add_parser("character", help="Manage characters")
    char_sub = character.add_subparsers(dest="character_command", required=True)
    char_list = char_sub.add_parser("list", help="List characters")
    char_list.add_argument("query", nargs="?", default="")
    for option in ("--series", "--book", "--role"):
        char_list.add_argument(option)
    char_add = char_sub.add_parser("add", help="Add a character")
    char_add.add_argument("first_name")
    char_add.add_argument("last_name", nargs="?", default="")
    for option in ("--title", "--sex", "--race", "--series", "--book", "--role", "--notes"):
        char_add.add_argument(option, default="")
    char_delete = char_sub.add_parser("delete", help="Delete a character by full name or id")
    char_delete.add_argument("character")

    backup = sub.add_parser("backup", help="Manage backups")
    backup_sub = backup.add_subparsers(dest="backup_command", required=True)
    backup_create = backup_sub.add_parser("create", help="Back up the current database")
    backup_create.add_argument("--force", action="store_true", help="Ignore the cooldown")
    backup_list = backup_sub.add_parser("list", help="List backups of the current database")
    backup_list.add_argument("--all", action="store_true", help="List backups of all databases")
    backup_sub.add_parser("verify", help="Verify a backup").add_argument("filename")
    backup_restore = backup_sub.add_parser("restore", help="Restore a backup")
    backup_restore.add_argument("filename")
    backup_restore.add_argument(
        "--as", dest="as_name", metavar="NAME", help="Restore into a new database"
    )
    backup_sub.add_parser("delete", help="Delete a backup").add_argument("filename")

    autobackup = sub.add_parser("autobackup", help="Run or configure automatic backups")
    autobackup.add_argument("--interval", type=int, help="Minutes between backups")
    autobackup.add_argument("--once", action="store_true", help="Run one backup and exit")
    autobackup.add_argument("--disable", action="store_true", help="Turn auto-backup off")

    import_cmd = sub.add_parser("import", help="Import an exported database file")
    import_cmd.add_argument("file")
    mode = import_cmd.add_mutually_exclusive_group()
    mode.add_argument(
        "--merge", action="store_true", help="Merge into the current database (default)"
    )
    mode.add_argument("--as", dest="as_name", metavar="NAME", help="Import as a new database")

    export = sub.add_parser("export", help="Export the current database to JSON")
    export.add_argument("path", nargs="?", default=None)

    stats = sub.add_parser("stats", help="Show database statistics")
    stats.add_argument("--series", help="Limit network analysis to one series")

    timeline = sub.add_parser("timeline", help="Show the timeline")
    for option in ("--series", "--book", "--character"):
        timeline.add_argument(option)

    analyze = sub.add_parser("analyze", help="Extract character names from a manuscript")
    analyze.add_argument("file")
    analyze.add_argument("--min-mentions", type=int, default=None)
    analyze.add_argument("--add", action="store_true", help="Add the names as characters")
    analyze.add_argument("--series", default="")
    analyze.add_argument("--book", default="")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    from storyguard.services import ServiceContainer
    from storyguard.settings import Settings

    log_file = None if args.log_file.lower() == "none" else args.log_file
    try:
        settings = Settings.load()
    except ValueError as e:
        setup_logging(level=args.log_level or "INFO", log_file=log_file)
        logger.error("Invalid settings: %s", e)
        print(f"Error: invalid settings: {e}", file=sys.stderr)
        return 2
    setup_logging(level=args.log_level or settings.log_level, log_file=log_file)

    with log_context() as correlation_id:
        logger.debug("Running command %s (%s)", args.command, correlation_id)
        services = ServiceContainer(settings)
        try:
            if args.database:
                services.database.open_database(args.database)
            return COMMANDS[args.command](services, args)
        except StoryGuardError as e:
            logger.error("%s failed: %s", args.command, e)
            print(f"Error: {e}", file=sys.stderr)
            return 1
        finally:
            services.shutdown()


if __name__ == "__main__":
    sys.exit(main())
