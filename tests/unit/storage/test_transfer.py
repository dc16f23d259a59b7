"""
Tests for flow export and import.
"""

import json
from datetime import date

import pytest
from flow_replay.exceptions import ImportValidationError, StorageError
from flow_replay.models.flow import ElementSelector, Flow, Point, RecordedStep, StepType
from flow_replay.storage import (
    EXPORT_VERSION,
    MemoryFlowStore,
    backup_filename,
    dumps,
    export_flow,
    export_flows,
    flow_filename,
    import_flows,
    parse_import,
    read_import_file,
    sanitize_filename,
    write_export,
)


@pytest.fixture
def flow():
    return Flow.create(
        "Search & filter",
        start_url="https://shop.test/",
        steps=[
            RecordedStep.create(
                StepType.INPUT,
                ElementSelector(
                    css="#q",
                    xpath='//*[@id="q"]',
                    tag_name="input",
                    attributes={"name": "q"},
                ),
                value="lamp",
            ),
            RecordedStep.create(
                StepType.CLICK,
                ElementSelector(css="#go", xpath="", tag_name="button", text="Search"),
                delay=800,
                position=Point(40, 12),
            ),
            RecordedStep.navigation("https://shop.test/results", delay=1200),
        ],
    )


class TestExport:
    """Test export envelopes and file names."""

    def test_single_flow_envelope(self, flow):
        """Test one flow is exported under 'flow'."""
        envelope = export_flow(flow)

        assert envelope["version"] == EXPORT_VERSION
        assert isinstance(envelope["exportedAt"], int)
        assert envelope["flow"]["name"] == "Search & filter"
        assert "flows" not in envelope

    def test_backup_envelope(self, flow):
        """Test several flows are exported under 'flows'."""
        envelope = export_flows([flow, flow.copy_with_new_ids()])
        assert len(envelope["flows"]) == 2

    @pytest.mark.parametrize("name, expected", [
        ("Search & filter", "search-filter"),
        ("  Login -- Admin  ", "login-admin"),
        ("Überweisung", "berweisung"),
        ("!!!", "flow"),
        ("x" * 80, "x" * 50),
    ])
    def test_sanitize_filename(self, name, expected):
        """Test names become safe, lowercase file stems."""
        assert sanitize_filename(name) == expected

    def test_flow_filename(self, flow):
        """Test export files are named after the flow."""
        assert flow_filename(flow) == "search-filter.json"

    def test_backup_filename(self):
        """Test backups are named by date."""
        assert backup_filename(date(2024, 3, 9)) == "flow-recorder-backup-2024-03-09.json"

    def test_write_export(self, flow, tmp_path):
        """Test envelopes are written as indented JSON."""
        path = write_export(export_flow(flow), tmp_path / "out" / flow_filename(flow))

        assert path.exists()
        assert json.loads(path.read_text(encoding="utf-8"))["flow"]["id"] == flow.id


class TestImport:
    """Test validation and import of export files."""

    def test_import_assigns_fresh_ids(self, flow):
        """Test imported flows and steps get new ids, keeping their content."""
        imported = parse_import(dumps(export_flow(flow)))

        assert len(imported) == 1
        copy = imported[0]
        assert copy.id != flow.id
        assert {s.id for s in copy.steps}.isdisjoint({s.id for s in flow.steps})
        assert copy.name == flow.name
        assert copy.start_url == flow.start_url
        assert [s.type for s in copy.steps] == [s.type for s in flow.steps]
        assert copy.steps[0].target.attributes == {"name": "q"}
        assert copy.steps[1].position == Point(40, 12)
        assert copy.steps[1].target.text == "Search"
        assert copy.steps[2].url == "https://shop.test/results"
        assert [s.delay for s in copy.steps] == [0, 800, 1200]

    def test_import_backup(self, flow):
        """Test every flow of a backup is imported in file order."""
        other = Flow.create("Other")
        imported = parse_import(dumps(export_flows([flow, other])))
        assert [f.name for f in imported] == ["Search & filter", "Other"]

    async def test_import_into_store(self, flow):
        """Test imported flows are saved to the store."""
        store = MemoryFlowStore()

        imported = await import_flows(store, dumps(export_flow(flow)))

        assert [f.id for f in await store.get_flows()] == [imported[0].id]

    @pytest.mark.parametrize("content, reason", [
        ("not json", "Invalid JSON"),
        (json.dumps({"flow": {"name": "x", "steps": []}}), "Invalid file format: missing version"),
        (json.dumps({"version": "1.0.0"}), "Invalid file format: no flow data found"),
        (json.dumps({"version": "1.0.0", "flows": ["x"]}), "Invalid flow data"),
        (json.dumps({"version": "1.0.0", "flow": {"name": "x"}}), "Invalid flow structure"),
        (json.dumps({"version": "1.0.0", "flow": {"steps": []}}), "Invalid flow structure"),
        (
            json.dumps({"version": "1.0.0", "flow": {"name": "x", "steps": [{"type": "hover"}]}}),
            "Invalid step data",
        ),
        (
            json.dumps({"version": "1.0.0", "flow": {"name": "x", "steps": [{"type": "click", "delay": -5}]}}),
            "Invalid step data",
        ),
    ])
    def test_invalid_files(self, content, reason):
        """Test malformed files are rejected with a reason."""
        with pytest.raises(ImportValidationError) as exc_info:
            parse_import(content)
        assert exc_info.value.reason == reason

    def test_invalid_step_is_located(self):
        """Test a bad step reports the flow and step it sits in."""
        content = json.dumps({
            "version": "1.0.0",
            "flows": [
                {"name": "ok", "steps": []},
                {"name": "bad", "steps": [{"type": "click"}, {"type": "hover"}]},
            ],
        })
        with pytest.raises(ImportValidationError) as exc_info:
            parse_import(content)

        assert exc_info.value.reason == "Invalid step data"
        assert exc_info.value.details["flow"] == 1
        assert exc_info.value.details["step"] == 1

    def test_invalid_flow_names_the_field(self):
        """Test a structural problem names the offending field."""
        content = json.dumps({"version": "1.0.0", "flow": {"name": "x", "steps": "nope"}})
        with pytest.raises(ImportValidationError) as exc_info:
            parse_import(content)

        assert exc_info.value.reason == "Invalid flow structure"
        assert exc_info.value.details == {"flow": 0, "field": "steps"}

    async def test_invalid_backup_saves_nothing(self, flow):
        """Test one bad flow rejects the whole file."""
        envelope = export_flows([flow])
        envelope["flows"].append({"name": "Broken", "steps": "nope"})
        store = MemoryFlowStore()

        with pytest.raises(ImportValidationError):
            await import_flows(store, dumps(envelope))

        assert await store.get_flows() == []

    def test_read_import_file(self, flow, tmp_path):
        """Test export files are read back as text."""
        path = write_export(export_flow(flow), tmp_path / "flow.json")
        assert parse_import(read_import_file(path))[0].name == flow.name

    def test_read_missing_file(self, tmp_path):
        """Test unreadable files raise StorageError."""
        with pytest.raises(StorageError, match="Failed to read file"):
            read_import_file(tmp_path / "missing.json")
