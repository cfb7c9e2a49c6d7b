"""Tests for ImportService."""

import json

import pytest

from storyguard.services.import_service import (
    ImportResult,
    _content_matches,
    validate_import_data,
)
from storyguard.utils.exceptions import DatabaseExistsError, ImportValidationError


def _export(services) -> dict:
    """Current database in export format."""
    data = services.database.snapshot()
    data["metadata"] = {"databaseName": services.database.current_name, "backupType": "export"}
    return data


@pytest.fixture
def export_data(populated):
    """Export of the populated database, with a plot, world element and tag."""
    populated.plots.add_plot("Sorting", description="The hat decides", series="Hogwarts")
    populated.world.add_element("Patronus", category="Magic System", description="A guardian")
    populated.tags.add_tag("Wizard")
    return _export(populated)


class TestValidateImportData:
    """Tests for validate_import_data."""

    def test_accepts_export(self, export_data):
        """A database export passes."""
        assert validate_import_data(export_data) is export_data

    def test_rejects_non_object(self):
        """Top level must be an object."""
        with pytest.raises(ImportValidationError, match="JSON object"):
            validate_import_data([1, 2])

    def test_reports_missing_keys(self):
        """Missing required keys are listed."""
        with pytest.raises(ImportValidationError) as exc_info:
            validate_import_data({"characters": []})
        assert exc_info.value.missing_keys == ["titles", "version"]

    def test_rejects_non_list_arrays(self):
        """Entity arrays must be lists."""
        with pytest.raises(ImportValidationError, match="plots"):
            validate_import_data(
                {"characters": [], "titles": [], "version": "2.0.0", "plots": {"a": 1}}
            )

    @pytest.mark.parametrize("version", ["1.9.0", "3.0.0", "beta"])
    def test_rejects_other_major_version(self, version):
        """Only the current major version is imported."""
        with pytest.raises(ImportValidationError) as exc_info:
            validate_import_data({"characters": [], "titles": [], "version": version})
        assert exc_info.value.version == version

    def test_accepts_other_minor_version(self):
        """Minor and patch versions may differ."""
        validate_import_data({"characters": [], "titles": [], "version": "2.7.1"})


class TestContentMatches:
    """Tests for the content comparison used to detect duplicates."""

    def test_all_fields_equal(self):
        """Identical fields match."""
        record = {"description": "a", "series": "b", "notes": "c", "tags": []}
        assert _content_matches(record, dict(record), ("description", "series", "notes", "tags"))

    def test_threshold_is_strict(self):
        """Three of four equal fields (75%) is not a match, and neither is exactly 80%."""
        keys = ("description", "series", "notes", "tags")
        existing = {"description": "a", "series": "b", "notes": "c", "tags": []}
        assert not _content_matches(existing, {**existing, "notes": "changed"}, keys)
        five = ("a", "b", "c", "d", "e")
        left = dict.fromkeys(five, 1)
        assert not _content_matches(left, {**left, "e": 2}, five)

    def test_no_shared_fields(self):
        """Records without comparable fields never match."""
        assert not _content_matches({"a": 1}, {"b": 1}, ("a", "b"))


class TestImportAsNew:
    """Tests for importing into a new database."""

    def test_creates_and_opens(self, services, export_data):
        """The import becomes a new current database."""
        database = services.import_svc.import_as_new(export_data, "Imported")
        assert services.database.current_name == "Imported"
        assert len(database.characters) == 5
        assert database.metadata is None
        assert "checksum" not in services.database.snapshot()

    def test_existing_name_rejected(self, services, export_data):
        """Names must be free."""
        with pytest.raises(DatabaseExistsError):
            services.import_svc.import_as_new(export_data, "Default")

    def test_invalid_records_rejected(self, services):
        """Records failing validation raise ImportValidationError."""
        data = {"characters": [{"firstName": ""}], "titles": [], "version": "2.0.0"}
        with pytest.raises(ImportValidationError, match="invalid records"):
            services.import_svc.import_as_new(data, "Broken")
        assert not services.database.exists("Broken")


class TestMergeIntoCurrent:
    """Tests for merging an import into the open database."""

    def test_merge_into_empty_database(self, export_data, services):
        """Every record is added to an empty database."""
        services.database.create_database("Empty")
        services.database.open_database("Empty")
        result = services.import_svc.merge_into_current(export_data)
        assert result.added == {
            "characters": 5,
            "locations": 1,
            "plots": 1,
            "worldElements": 1,
            "relationships": 3,
            "tags": 1,
        }
        assert result.total_skipped == 0
        assert services.database.has_unsaved_changes is False
        assert services.database.recent_activity()[0].type == "import_merged"

    def test_merging_twice_adds_nothing(self, export_data, services):
        """A second merge of the same data only skips."""
        result = services.import_svc.merge_into_current(export_data)
        assert result.total_added == 0
        assert result.skipped["characters"] == 5
        assert result.skipped["relationships"] == 3

    def test_character_matched_by_name_or_id(self, services):
        """Characters with a known id or full name are skipped."""
        harry = services.characters.add_character("Harry", "Potter")
        data = {
            "characters": [
                {"id": harry.id, "firstName": "Renamed"},
                {"firstName": "HARRY", "lastName": "potter"},
                {"firstName": "Luna", "lastName": "Lovegood"},
            ],
            "titles": [],
            "version": "2.0.0",
        }
        result = services.import_svc.merge_into_current(data)
        assert result.added == {"characters": 1}
        assert result.skipped == {"characters": 2}

    def test_changed_plot_is_added(self, services):
        """Plots with the same title but different content are kept."""
        services.plots.add_plot("Battle", description="a", series="b", notes="c")
        data = {
            "characters": [],
            "plots": [
                {"title": "Battle", "description": "a", "series": "b", "notes": "c"},
                {"title": "Battle", "description": "other", "series": "b", "notes": "c"},
            ],
            "titles": [],
            "version": "2.0.0",
        }
        result = services.import_svc.merge_into_current(data)
        assert result.added == {"plots": 1}
        assert result.skipped == {"plots": 1}

    def test_relationships_need_both_characters(self, services):
        """Relationships to characters that are not in the database are skipped."""
        services.characters.add_character("Harry", "Potter")
        services.characters.add_character("Ron", "Weasley")
        data = {
            "characters": [],
            "relationships": [
                {"character1": "Harry Potter", "character2": "Ron Weasley", "type": "friend"},
                {"character1": "Harry Potter", "character2": "Draco Malfoy", "type": "rival"},
            ],
            "titles": [],
            "version": "2.0.0",
        }
        result = services.import_svc.merge_into_current(data)
        assert result.added == {"relationships": 1}
        assert result.skipped == {"relationships": 1}

    def test_relationship_names_use_stored_spelling(self, services):
        """Imported relationships take the stored character names and join the network."""
        services.characters.add_character("Harry", "Potter")
        services.characters.add_character("Ron", "Weasley")
        data = {
            "characters": [],
            "relationships": [
                {"character1": "harry  potter", "character2": "RON WEASLEY", "type": "friend"},
            ],
            "titles": [],
            "version": "2.0.0",
        }
        services.import_svc.merge_into_current(data)
        relationship = services.relationships.list_relationships()[0]
        assert (relationship.character1, relationship.character2) == ("Harry Potter", "Ron Weasley")
        graph = services.relationships.build_graph()
        assert graph.has_edge("Harry Potter", "Ron Weasley")

    def test_colliding_ids_are_replaced(self, services):
        """A merged record whose id is already taken gets a new id."""
        castle = services.locations.add_location("Castle")
        exported = _export(services)
        services.locations.update_location(castle.id, name="Fortress")
        services.tags.add_tag("Hero")
        tag_id = services.tags.list_tags()[0].id
        exported["tags"] = [{"id": tag_id, "name": "Villain"}]

        result = services.import_svc.merge_into_current(exported)
        assert result.added == {"locations": 1, "tags": 1}
        location_ids = [loc.id for loc in services.locations.list_locations()]
        assert len(set(location_ids)) == 2
        assert services.locations.get_location(castle.id).name == "Fortress"
        tag_ids = [t.id for t in services.tags.list_tags()]
        assert len(set(tag_ids)) == 2

    def test_lookups_and_custom_field_types_merged(self, services):
        """Lookup lists gain new values without duplicates."""
        services.database.current.series_list.append("Hogwarts")
        data = {
            "characters": [],
            "titles": ["Mr.", "Archmage"],
            "seriesList": ["hogwarts", "Discworld"],
            "customFieldTypes": [{"name": "Wand"}, {"name": "wand"}],
            "version": "2.0.0",
        }
        services.import_svc.merge_into_current(data)
        db = services.database.current
        assert db.titles.count("Mr.") == 1
        assert "Archmage" in db.titles
        assert db.series_list == ["Hogwarts", "Discworld"]
        assert db.custom_field_types == [{"name": "Wand"}]


class TestLoadFile:
    """Tests for reading import files."""

    def test_reads_valid_file(self, services, export_data, tmp_path):
        """A JSON export is read and validated."""
        path = tmp_path / "export.json"
        path.write_text(json.dumps(export_data), encoding="utf-8")
        assert services.import_svc.load_file(path)["version"] == export_data["version"]

    def test_invalid_json(self, services, tmp_path):
        """Bad JSON is an ImportValidationError."""
        path = tmp_path / "export.json"
        path.write_text("{nope", encoding="utf-8")
        with pytest.raises(ImportValidationError, match="not valid JSON"):
            services.import_svc.load_file(path)

    def test_missing_file(self, services, tmp_path):
        """Unreadable files are an ImportValidationError."""
        with pytest.raises(ImportValidationError, match="Cannot read"):
            services.import_svc.load_file(tmp_path / "missing.json")


class TestImportResult:
    """Tests for ImportResult."""

    def test_summary(self):
        """The summary mentions skipped duplicates by kind."""
        result = ImportResult()
        assert result.summary() == "Imported 0 records"
        result.count("characters", True)
        result.count("characters", False)
        result.count("tags", False)
        assert result.summary() == (
            "Imported 1 records, skipped 2 duplicates (1 characters, 1 tags)"
        )
