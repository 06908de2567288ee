from datetime import UTC, datetime, timedelta

import pytest

from gitea_activity.errors import GiteaApiError

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


def make_commit(
    sha,
    login="alice",
    *,
    days_ago=1.0,
    additions=3,
    deletions=2,
    stats=True,
    full_name=None,
):
    """Сырой коммит в том виде, в каком его отдаёт Gitea."""
    date = (NOW - timedelta(days=days_ago)).isoformat().replace("+00:00", "Z")
    commit = {
        "sha": sha,
        "created": date,
        "author": {"login": login, "username": login, "full_name": full_name or ""},
        "commit": {
            "author": {"name": login.title(), "email": f"{login}@example.com", "date": date},
            "committer": {"name": login.title(), "email": f"{login}@example.com", "date": date},
        },
    }
    if stats:
        commit["stats"] = {
            "additions": additions,
            "deletions": deletions,
            "total": additions + deletions,
        }
    return commit


def make_repo(full_name, default_branch="main"):
    owner, name = full_name.split("/")
    return {
        "id": abs(hash(full_name)) % 10_000,
        "name": name,
        "full_name": full_name,
        "owner": {"login": owner, "username": owner},
        "default_branch": default_branch,
    }


class FakeGiteaClient:
    """
    Gitea в памяти. Коммиты ветки отдаются как есть, без фильтрации по
    since/until, чтобы окно проверялось на стороне сервиса.
    """

    def __init__(self, repos=None, branches=None, commits=None, failing=()):
        self.repos = repos or []
        self.branches = branches or {}
        self.commits = commits or {}
        self.failing = set(failing)
        self.calls = []

    @staticmethod
    def _page(items, page, limit):
        start = (page - 1) * limit
        return items[start : start + limit]

    async def search_repositories(self, *, page, limit):
        self.calls.append(("repos", page))
        return {"ok": True, "data": self._page(self.repos, page, limit)}

    async def list_branches(self, owner, repo, *, page, limit):
        full_name = f"{owner}/{repo}"
        self.calls.append(("branches", full_name, page))
        if full_name in self.failing:
            raise GiteaApiError("boom", status=500)
        names = self.branches.get(full_name, [])
        return [{"name": n} for n in self._page(names, page, limit)]

    async def list_commits(
        self, owner, repo, *, page, limit, since=None, until=None, sha=None
    ):
        full_name = f"{owner}/{repo}"
        self.calls.append(("commits", full_name, sha, page))
        if full_name in self.failing:
            raise GiteaApiError("boom", status=500)
        return self._page(self.commits.get((full_name, sha or ""), []), page, limit)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW
