from dataclasses import dataclass, field
from datetime import UTC, datetime


def to_iso(value: datetime | None) -> str | None:
    """ISO-8601 в UTC с миллисекундами и суффиксом Z, None остаётся None."""
    if value is None:
        return None
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


@dataclass(slots=True, frozen=True)
class RepositoryRef:
    """Репозиторий из листинга Gitea; идентичность задаёт full_name (owner/name)."""

    owner: str
    name: str
    full_name: str
    default_branch: str = ""


@dataclass(slots=True, frozen=True)
class NormalizedCommit:
    """Коммит, приведённый к виду (автор, время, число изменённых строк)."""

    sha: str | None
    username: str
    display_name: str
    timestamp: datetime
    lines_changed: int


@dataclass(slots=True)
class UserAggregate:
    username: str
    display_name: str
    commits: int = 0
    lines_changed: int = 0
    repositories: set[str] = field(default_factory=set)
    last_activity: datetime | None = None


@dataclass(slots=True)
class RepoAggregate:
    owner: str
    name: str
    full_name: str
    commits: int = 0
    lines_changed: int = 0
    contributors: set[str] = field(default_factory=set)
    last_activity: datetime | None = None
    seen_shas: set[str] = field(default_factory=set)


@dataclass(slots=True, frozen=True)
class UserSnapshot:
    username: str
    display_name: str
    commits: int
    lines_changed: int
    repositories: int
    last_activity: datetime | None

    def to_dict(self) -> dict:
        return {
            "username": self.username,
            "displayName": self.display_name,
            "commits": self.commits,
            "linesChanged": self.lines_changed,
            "repositories": self.repositories,
            "lastActivity": to_iso(self.last_activity),
        }


@dataclass(slots=True, frozen=True)
class RepoSnapshot:
    owner: str
    name: str
    full_name: str
    commits: int
    lines_changed: int
    contributors: int
    last_activity: datetime | None

    def to_dict(self) -> dict:
        return {
            "owner": self.owner,
            "name": self.name,
            "fullName": self.full_name,
            "commits": self.commits,
            "linesChanged": self.lines_changed,
            "contributors": self.contributors,
            "lastActivity": to_iso(self.last_activity),
        }


@dataclass(slots=True, frozen=True)
class ActivityStats:
    """
    Итог одного прогона агрегации.

    partial=True, если часть данных могла быть потеряна: сработал лимит
    страниц или репозиторий не удалось обработать.
    """

    users: list[UserSnapshot]
    repos: list[RepoSnapshot]
    partial: bool = False
    failed_repositories: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "users": [u.to_dict() for u in self.users],
            "repos": [r.to_dict() for r in self.repos],
        }
