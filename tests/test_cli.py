import pytest
import yaml
from click.testing import CliRunner
from conftest import FakeDirectory, group_record, member_edge, owner_edge

from gcch_migration import datasets
from gcch_migration.cli import app
from gcch_migration.errors import ConnectionFailure
from gcch_migration.models.records import GroupRecord, MembershipEdge, OwnershipEdge

STAMP = "20240105_093000"


@pytest.fixture
def settings(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.safe_dump({
        "clouds": {"gcc_high": {"graph_endpoint": "https://graph.microsoft.us/v1.0",
                                "login_endpoint": "https://login.microsoftonline.us",
                                "graph_scope": "https://graph.microsoft.us/.default"}},
        "tenants": {"destination": {"cloud": "gcc_high", "tenant_id": "", "client_id": ""}},
        "import": {"settle_seconds": 0},
    }), encoding="utf-8")
    return path


@pytest.fixture
def fake(monkeypatch):
    directory = FakeDirectory()
    monkeypatch.setattr(app, "build_directory", lambda config, role: directory)
    return directory


def invoke(settings, tmp_path, *args):
    base = ["--config", str(settings), "--log-dir", str(tmp_path / "logs")]
    return CliRunner().invoke(app.cli, base + list(args))


def write_export(folder):
    datasets.write_records(folder / datasets.dataset_filename("groups", STAMP),
                           [group_record("Finance-Team")], GroupRecord)
    datasets.write_records(folder / datasets.dataset_filename("members", STAMP),
                           [member_edge("Finance-Team", "Alice"), member_edge("Finance-Team", "Unknown-User")],
                           MembershipEdge)
    datasets.write_records(folder / datasets.dataset_filename("owners", STAMP),
                           [owner_edge("Finance-Team", "Carol")], OwnershipEdge)


def test_import_requires_a_phase(settings, tmp_path, fake):
    result = invoke(settings, tmp_path, "import", "--import-dir", str(tmp_path))
    assert result.exit_code == 2
    assert "Select at least one phase" in result.output
    assert fake.mutations == []


def test_import_all_completes_with_errors(settings, tmp_path, fake):
    write_export(tmp_path)
    fake.add_user("Alice")
    fake.add_user("Carol")

    result = invoke(settings, tmp_path, "import", "--import-dir", str(tmp_path), "--all")

    assert result.exit_code == app.EXIT_COMPLETED_WITH_ERRORS
    assert [c[0] for c in fake.mutations] == ["create_group", "add_owner", "add_member"]
    assert list((tmp_path / "logs").glob("import_errors_*.log"))


def test_clean_preview_exits_zero(settings, tmp_path, fake):
    write_export(tmp_path)
    fake.add_group("GCC-Finance-Team")
    for name in ("Alice", "Carol", "Unknown-User"):
        fake.add_user(name)

    result = invoke(settings, tmp_path, "import", "--import-dir", str(tmp_path), "--add-members",
                    "--add-owners", "--preview", "--prefix", "GCC-")

    assert result.exit_code == app.EXIT_OK
    assert fake.mutations == []


def test_unreachable_destination_exits_one(settings, tmp_path, monkeypatch):
    def refuse(config, role):
        raise ConnectionFailure("tenant unreachable")

    monkeypatch.setattr(app, "build_directory", refuse)
    write_export(tmp_path)

    result = invoke(settings, tmp_path, "import", "--import-dir", str(tmp_path), "--create-groups")

    assert result.exit_code == app.EXIT_CONNECTION


def test_missing_tenant_settings_exit_one(settings, tmp_path):
    write_export(tmp_path)
    result = invoke(settings, tmp_path, "import", "--import-dir", str(tmp_path), "--create-groups")
    assert result.exit_code == app.EXIT_CONNECTION


def test_export_writes_datasets(settings, tmp_path, fake):
    group = fake.add_group("Ops")
    fake.relate("members", group, fake.add_user("Alice"))
    out = tmp_path / "export"

    result = invoke(settings, tmp_path, "export", "--output-dir", str(out), "--no-connect")

    assert result.exit_code == app.EXIT_OK
    groups_file = datasets.discover_latest(out, "groups")
    assert [g.display_name for g in datasets.read_groups(groups_file)] == ["Ops"]
    assert len(datasets.read_members(datasets.discover_latest(out, "members"))) == 1


def test_connection_lost_mid_import_exits_one(settings, tmp_path, fake):
    write_export(tmp_path)

    def refuse(field, value):
        raise ConnectionFailure("Authentication to destination tenant failed: 401")

    fake.find_groups = refuse

    result = invoke(settings, tmp_path, "import", "--import-dir", str(tmp_path), "--all", "--no-connect")

    assert result.exit_code == app.EXIT_CONNECTION
    assert fake.mutations == []


def test_connection_lost_mid_export_exits_one(settings, tmp_path, fake):
    fake.add_group("Ops")

    def refuse(group_id):
        raise ConnectionFailure("Authentication to source tenant failed: 401")

    fake.list_group_members = refuse

    result = invoke(settings, tmp_path, "export", "--output-dir", str(tmp_path / "export"), "--no-connect")

    assert result.exit_code == app.EXIT_CONNECTION


def test_negative_settle_delay_is_a_usage_error(settings, tmp_path, fake):
    write_export(tmp_path)

    result = invoke(settings, tmp_path, "import", "--import-dir", str(tmp_path), "--create-groups",
                    "--settle-seconds", "-1")

    assert result.exit_code == 2
    assert "--settle-seconds" in result.output
    assert fake.mutations == []
