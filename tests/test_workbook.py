from datetime import UTC, datetime
from io import BytesIO

from openpyxl import Workbook, load_workbook

from gitea_activity.export.workbook import (
    _set_widths,
    build_activity_workbook,
    export_filename,
)
from gitea_activity.models.activity import RepoSnapshot, UserSnapshot


def test_workbook_has_users_and_repositories_sheets():
    users = [
        UserSnapshot(
            username="alice",
            display_name="Alice",
            commits=3,
            lines_changed=42,
            repositories=2,
            last_activity=datetime(2026, 10, 18, 9, 30, tzinfo=UTC),
        ),
        UserSnapshot(
            username="bob",
            display_name="Bob",
            commits=1,
            lines_changed=0,
            repositories=1,
            last_activity=None,
        ),
    ]
    repos = [
        RepoSnapshot(
            owner="acme",
            name="widgets",
            full_name="acme/widgets",
            commits=4,
            lines_changed=42,
            contributors=2,
            last_activity=datetime(2026, 10, 18, 9, 30, tzinfo=UTC),
        )
    ]

    book = load_workbook(BytesIO(build_activity_workbook(users, repos)))

    assert book.sheetnames == ["Users", "Repositories"]

    users_sheet = book["Users"]
    assert [c.value for c in users_sheet[1]] == [
        "Username",
        "Display name",
        "Commits",
        "Lines changed",
        "Repositories",
        "Last activity",
    ]
    assert [c.value for c in users_sheet[2]][:5] == ["alice", "Alice", 3, 42, 2]
    assert users_sheet["F2"].value == datetime(2026, 10, 18, 9, 30)
    assert users_sheet["F3"].value in (None, "")
    assert users_sheet.column_dimensions["B"].width == 32

    repos_sheet = book["Repositories"]
    assert [c.value for c in repos_sheet[2]][:4] == ["acme/widgets", 4, 42, 2]


def test_empty_workbook_keeps_headers():
    book = load_workbook(BytesIO(build_activity_workbook([], [])))
    assert book["Repositories"]["A1"].value == "Repository"
    assert book["Repositories"].max_row == 1


def test_export_filename():
    assert export_filename(7, False) == "activity-7d-default-branch.xlsx"
    assert export_filename(30, True) == "activity-30d-all-branches.xlsx"


def test_column_widths_past_column_z():
    sheet = Workbook().active
    columns = [(f"c{i}", 10 + i) for i in range(28)]

    _set_widths(sheet, columns)

    assert sheet.column_dimensions["Z"].width == 35
    assert sheet.column_dimensions["AA"].width == 36
    assert sheet.column_dimensions["AB"].width == 37
