from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from gitea_activity.config.logger import logger
from gitea_activity.errors import ConfigurationError
from gitea_activity.services.commit_normalizer import resolve_timestamp

FetchPage = Callable[[int, int], Awaitable[Any]]


@dataclass(slots=True)
class PageWalk:
    """Элементы, собранные со всех пройденных страниц листинга."""

    items: list[Any] = field(default_factory=list)
    pages: int = 0
    truncated: bool = False


async def paginate(
    fetch_page: FetchPage,
    *,
    page_size: int,
    max_pages: int,
    extract: Callable[[Any], Any] | None = None,
    stop_after: Callable[[list[Any]], bool] | None = None,
    resource: str = "",
) -> PageWalk:
    """
    Последовательно проходит страницы листинга, начиная с первой.

    Остановка: страница короче page_size (в том числе пустая или не список),
    stop_after(страница) вернул True, либо достигнут лимит max_pages.
    В последнем случае пишется предупреждение и walk.truncated = True.

    :param fetch_page: Корутина (page, limit) -> ответ API
    :param page_size: Размер страницы
    :param max_pages: Максимальное число запрашиваемых страниц
    :param extract: Достаёт список элементов из ответа API
    :param stop_after: Решает по полученной странице, что дальше идти не нужно
    :param resource: Название листинга для логов
    :return: PageWalk
    """
    if page_size < 1 or max_pages < 1:
        raise ConfigurationError("page_size and max_pages must be >= 1.")

    walk = PageWalk()
    page = 1

    while True:
        payload = await fetch_page(page, page_size)
        batch = extract(payload) if extract is not None else payload
        if not isinstance(batch, list):
            batch = []

        walk.items.extend(batch)
        walk.pages = page

        if len(batch) < page_size:
            return walk

        if stop_after is not None and stop_after(batch):
            return walk

        if page >= max_pages:
            logger.warning(
                "Достигнут лимит страниц, листинг остановлен досрочно",
                extra={"resource": resource, "max_pages": max_pages},
            )
            walk.truncated = True
            return walk

        page += 1


def _unwrap_search(payload: Any) -> Any:
    if isinstance(payload, dict):
        return payload.get("data")
    return None


async def fetch_all_repositories(
    client, *, page_size: int, max_pages: int
) -> PageWalk:
    """
    Все репозитории, видимые токену (сырые записи Gitea).

    :param client: GiteaClient
    :param page_size: Размер страницы
    :param max_pages: Лимит страниц
    :return: PageWalk с сырыми репозиториями
    """

    async def fetch_page(page: int, limit: int) -> Any:
        return await client.search_repositories(page=page, limit=limit)

    return await paginate(
        fetch_page,
        page_size=page_size,
        max_pages=max_pages,
        extract=_unwrap_search,
        resource="repositories",
    )


async def fetch_branch_names(
    client, owner: str, repo: str, *, page_size: int, max_pages: int
) -> PageWalk:
    """
    Имена всех веток репозитория. Записи без name отбрасываются.

    :return: PageWalk с именами веток в items
    """

    async def fetch_page(page: int, limit: int) -> Any:
        return await client.list_branches(owner, repo, page=page, limit=limit)

    walk = await paginate(
        fetch_page,
        page_size=page_size,
        max_pages=max_pages,
        resource=f"branches of {owner}/{repo}",
    )
    walk.items = [
        branch["name"]
        for branch in walk.items
        if isinstance(branch, dict) and branch.get("name")
    ]
    return walk


async def fetch_commits(
    client,
    owner: str,
    repo: str,
    *,
    since: datetime | None,
    until: datetime | None,
    branch: str | None,
    page_size: int,
    max_pages: int,
) -> PageWalk:
    """
    Коммиты ветки в окне [since, until].

    Gitea отдаёт коммиты от новых к старым, поэтому страница, на которой
    самый старый коммит раньше since, считается последней.

    :return: PageWalk с сырыми коммитами
    """

    async def fetch_page(page: int, limit: int) -> Any:
        return await client.list_commits(
            owner,
            repo,
            page=page,
            limit=limit,
            since=since,
            until=until,
            sha=branch or None,
        )

    def crossed_window(batch: list[Any]) -> bool:
        return since is not None and min(map(resolve_timestamp, batch)) < since

    return await paginate(
        fetch_page,
        page_size=page_size,
        max_pages=max_pages,
        stop_after=crossed_window,
        resource=f"commits of {owner}/{repo}@{branch or 'default'}",
    )
