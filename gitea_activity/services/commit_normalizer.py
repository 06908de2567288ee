"""
Приведение сырых коммитов Gitea к NormalizedCommit.

Все цепочки подстановок (время, автор, отображаемое имя, число строк)
собраны здесь.
"""

from datetime import UTC, datetime
from typing import Any

from gitea_activity.models.activity import NormalizedCommit

UNKNOWN_AUTHOR = "unknown"
EPOCH = datetime.fromtimestamp(0, UTC)


def _get(record: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(record, dict):
            return None
        record = record.get(key)
    return record


def parse_timestamp(value: Any) -> datetime | None:
    """
    Разбирает ISO-8601 строку Gitea. Время без зоны считается UTC.

    :param value: Строка даты
    :return: datetime с зоной или None, если разобрать не удалось
    """
    if not isinstance(value, str) or not value.strip():
        return None

    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def resolve_timestamp(commit: Any) -> datetime:
    """
    Время коммита: дата автора → дата коммитера → created → 1970-01-01.

    :param commit: Сырой коммит
    :return: Время коммита
    """
    for path in (("commit", "author", "date"), ("commit", "committer", "date"), ("created",)):
        parsed = parse_timestamp(_get(commit, *path))
        if parsed is not None:
            return parsed
    return EPOCH


def resolve_author(commit: Any) -> tuple[str, str]:
    """
    Определяет (username, display_name) автора коммита.

    Учётная запись берётся из author, а при её отсутствии из committer.

    :param commit: Сырой коммит
    :return: Пара (username, display_name); username == "unknown", если
        автора определить не удалось
    """
    account = _get(commit, "author") or _get(commit, "committer") or {}
    if not isinstance(account, dict):
        account = {}
    git_author = _get(commit, "commit", "author") or {}
    if not isinstance(git_author, dict):
        git_author = {}

    username = (
        account.get("login")
        or account.get("username")
        or git_author.get("email")
        or git_author.get("name")
        or UNKNOWN_AUTHOR
    )
    display_name = (
        account.get("full_name")
        or account.get("username")
        or git_author.get("name")
        or username
    )
    return username, display_name


def lines_changed(commit: Any) -> int:
    stats = _get(commit, "stats")
    if not isinstance(stats, dict):
        return 0

    total = stats.get("total")
    if total is not None:
        return int(total)
    return int(stats.get("additions") or 0) + int(stats.get("deletions") or 0)


def normalize_commit(commit: Any) -> NormalizedCommit | None:
    """
    Приводит сырой коммит к NormalizedCommit.

    :param commit: Сырой коммит из Gitea API
    :return: NormalizedCommit или None, если автора установить нельзя
    """
    username, display_name = resolve_author(commit)
    if not username or username == UNKNOWN_AUTHOR:
        return None

    return NormalizedCommit(
        sha=_get(commit, "sha") or None,
        username=username,
        display_name=display_name,
        timestamp=resolve_timestamp(commit),
        lines_changed=lines_changed(commit),
    )
