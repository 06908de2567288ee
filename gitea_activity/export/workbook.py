from datetime import UTC, datetime
from io import BytesIO

import pandas as pd
from openpyxl.utils import get_column_letter

from gitea_activity.models.activity import RepoSnapshot, UserSnapshot

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# (заголовок, ширина колонки)
USER_COLUMNS = [
    ("Username", 24),
    ("Display name", 32),
    ("Commits", 12),
    ("Lines changed", 18),
    ("Repositories", 14),
    ("Last activity", 22),
]
REPO_COLUMNS = [
    ("Repository", 36),
    ("Commits", 12),
    ("Lines changed", 18),
    ("Contributors", 16),
    ("Last activity", 22),
]


def _excel_datetime(value: datetime | None) -> datetime | None:
    # Excel не хранит часовой пояс
    if value is None:
        return None
    return value.astimezone(UTC).replace(tzinfo=None)


def _frame(rows: list[list], columns: list[tuple[str, int]]) -> pd.DataFrame:
    return pd.DataFrame(rows, columns=[title for title, _ in columns])


def _set_widths(worksheet, columns: list[tuple[str, int]]) -> None:
    for idx, (_, width) in enumerate(columns, start=1):
        worksheet.column_dimensions[get_column_letter(idx)].width = width


def build_activity_workbook(
    users: list[UserSnapshot], repos: list[RepoSnapshot]
) -> bytes:
    """
    Формирует xlsx-отчёт с листами Users и Repositories.

    :param users: Срез активности пользователей
    :param repos: Срез активности репозиториев
    :return: Содержимое xlsx-файла
    """
    users_df = _frame(
        [
            [
                u.username,
                u.display_name,
                u.commits,
                u.lines_changed,
                u.repositories,
                _excel_datetime(u.last_activity),
            ]
            for u in users
        ],
        USER_COLUMNS,
    )
    repos_df = _frame(
        [
            [
                r.full_name,
                r.commits,
                r.lines_changed,
                r.contributors,
                _excel_datetime(r.last_activity),
            ]
            for r in repos
        ],
        REPO_COLUMNS,
    )

    buffer = BytesIO()
    with pd.ExcelWriter(
        buffer, engine="openpyxl", datetime_format="YYYY-MM-DD HH:MM:SS"
    ) as writer:
        users_df.to_excel(writer, sheet_name="Users", index=False)
        repos_df.to_excel(writer, sheet_name="Repositories", index=False)

        _set_widths(writer.sheets["Users"], USER_COLUMNS)
        _set_widths(writer.sheets["Repositories"], REPO_COLUMNS)

        writer.book.properties.creator = "Gitea activity dashboard"

    return buffer.getvalue()


def export_filename(days: int, include_all_branches: bool) -> str:
    suffix = "all-branches" if include_all_branches else "default-branch"
    return f"activity-{days}d-{suffix}.xlsx"
