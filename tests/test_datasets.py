import pytest

from gcch_migration import datasets
from gcch_migration.errors import DatasetError
from gcch_migration.models.records import GroupRecord, MembershipEdge


GROUP_HEADER = ("DisplayName,Description,SourceObjectId,MailNickname,SecurityEnabled,MailEnabled,GroupTypes,"
                "CreatedDateTime,DirectorySyncEnabled,OnPremisesSecurityIdentifier,Visibility")


def test_group_row_layout():
    record = GroupRecord(
        display_name="Finance-Team",
        source_object_id="11111111-aaaa",
        mail_nickname="finance-team",
        security_enabled=True,
        mail_enabled=False,
        group_types=["DynamicMembership"],
        directory_sync_enabled=None,
    )
    row = record.to_row()
    assert list(row) == GROUP_HEADER.split(",")
    assert row["SecurityEnabled"] == "True"
    assert row["MailEnabled"] == "False"
    assert row["DirectorySyncEnabled"] == "False"
    assert row["GroupTypes"] == "DynamicMembership"
    assert row["Description"] == ""


def test_reads_file_saved_by_excel(tmp_path):
    path = tmp_path / "SecurityGroups_20240105_093000.csv"
    path.write_text(
        "\ufeff" + GROUP_HEADER + "\n"
        "Finance-Team,,g-1,finance,TRUE,false,Unified;DynamicMembership,2021-03-01T10:00:00Z,,,Private\n",
        encoding="utf-8",
    )
    (group,) = datasets.read_groups(path)
    assert group.display_name == "Finance-Team"
    assert group.description is None
    assert group.security_enabled is True
    assert group.mail_enabled is False
    assert group.group_types == frozenset({"Unified", "DynamicMembership"})
    assert group.visibility == "Private"
    assert group.on_premises_security_identifier is None


def test_duplicate_source_object_ids_rejected(tmp_path):
    path = tmp_path / "groups.csv"
    datasets.write_records(path, [
        GroupRecord(display_name="A", source_object_id="same"),
        GroupRecord(display_name="B", source_object_id="same"),
    ], GroupRecord)
    with pytest.raises(DatasetError, match="more than once"):
        datasets.read_groups(path)


def test_missing_required_column_is_reported(tmp_path):
    path = tmp_path / "members.csv"
    path.write_text("GroupName,MemberType,MemberDisplayName\nOps,User,Alice\n", encoding="utf-8")
    with pytest.raises(DatasetError, match="GroupSourceObjectId"):
        datasets.read_members(path)


def test_missing_file(tmp_path):
    with pytest.raises(DatasetError, match="not found"):
        datasets.read_owners(tmp_path / "nope.csv")


def test_edge_optional_columns_blank_to_none(tmp_path):
    path = tmp_path / "members.csv"
    datasets.write_records(path, [MembershipEdge(
        group_name="Ops", group_source_object_id="g-1", member_type="Group",
        member_display_name="Ops-Nested", member_source_object_id="g-2",
    )], MembershipEdge)
    (edge,) = datasets.read_members(path)
    assert edge.member_principal_name is None
    assert edge.member_mail_nickname is None
    assert edge.member_type == "Group"


def test_groups_pattern_does_not_pick_member_files(tmp_path):
    datasets.write_records(tmp_path / "SecurityGroupMembers_20240105_093000.csv", [], MembershipEdge)
    assert datasets.discover_latest(tmp_path, "groups") is None
    assert datasets.dataset_filename("owners", "20240105_093000") == "SecurityGroupOwners_20240105_093000.csv"
