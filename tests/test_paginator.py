import logging
from datetime import timedelta

import pytest

from conftest import NOW, FakeGiteaClient, make_commit, make_repo
from gitea_activity.errors import ConfigurationError
from gitea_activity.services.paginator import (
    fetch_all_repositories,
    fetch_branch_names,
    fetch_commits,
    paginate,
)


@pytest.mark.asyncio
async def test_stops_on_short_page():
    requested = []

    async def fetch_page(page, limit):
        requested.append(page)
        return list(range(limit)) if page < 3 else [1]

    walk = await paginate(fetch_page, page_size=5, max_pages=100)

    assert requested == [1, 2, 3]
    assert len(walk.items) == 11
    assert walk.pages == 3
    assert not walk.truncated


@pytest.mark.asyncio
async def test_malformed_page_is_empty_and_stops():
    requested = []

    async def fetch_page(page, limit):
        requested.append(page)
        return list(range(limit)) if page == 1 else {"message": "oops"}

    walk = await paginate(fetch_page, page_size=2, max_pages=100)

    assert requested == [1, 2]
    assert walk.items == [0, 1]


@pytest.mark.asyncio
async def test_endless_feed_terminates_at_page_ceiling(caplog):
    requested = []

    async def fetch_page(page, limit):
        requested.append(page)
        return [page] * limit

    with caplog.at_level(logging.WARNING, logger="gitea_activity"):
        walk = await paginate(
            fetch_page, page_size=3, max_pages=7, resource="endless"
        )

    assert requested == list(range(1, 8))
    assert len(walk.items) == 21
    assert walk.truncated
    assert any(r.levelno == logging.WARNING for r in caplog.records)


@pytest.mark.asyncio
async def test_invalid_page_size_rejected():
    async def fetch_page(page, limit):
        return []

    with pytest.raises(ConfigurationError):
        await paginate(fetch_page, page_size=0, max_pages=1)


@pytest.mark.asyncio
async def test_repositories_are_unwrapped_from_data():
    repos = [make_repo(f"acme/r{i}") for i in range(5)]
    client = FakeGiteaClient(repos=repos)

    walk = await fetch_all_repositories(client, page_size=2, max_pages=200)

    assert [r["full_name"] for r in walk.items] == [r["full_name"] for r in repos]
    assert [c for c in client.calls if c[0] == "repos"] == [
        ("repos", 1),
        ("repos", 2),
        ("repos", 3),
    ]


@pytest.mark.asyncio
async def test_branch_names_skip_nameless_records():
    class Client(FakeGiteaClient):
        async def list_branches(self, owner, repo, *, page, limit):
            return [{"name": "main"}, {"commit": {}}, {"name": "dev"}]

    walk = await fetch_branch_names(Client(), "acme", "widgets", page_size=50, max_pages=200)

    assert walk.items == ["main", "dev"]


@pytest.mark.asyncio
async def test_commit_walk_stops_after_page_crossing_window():
    # От новых к старым: страница 2 пересекает начало окна
    commits = [make_commit(f"c{i}", days_ago=i) for i in range(12)]
    client = FakeGiteaClient(commits={("acme/widgets", "main"): commits})

    walk = await fetch_commits(
        client,
        "acme",
        "widgets",
        since=NOW - timedelta(days=6.5),
        until=NOW,
        branch="main",
        page_size=4,
        max_pages=200,
    )

    assert [c[3] for c in client.calls] == [1, 2]
    assert [c["sha"] for c in walk.items] == [f"c{i}" for i in range(8)]


@pytest.mark.asyncio
async def test_commit_walk_without_branch_passes_no_sha():
    client = FakeGiteaClient(commits={("acme/widgets", ""): [make_commit("a")]})

    walk = await fetch_commits(
        client,
        "acme",
        "widgets",
        since=NOW - timedelta(days=7),
        until=NOW,
        branch="",
        page_size=50,
        max_pages=200,
    )

    assert client.calls == [("commits", "acme/widgets", None, 1)]
    assert len(walk.items) == 1
