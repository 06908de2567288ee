from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from gitea_activity.config.config import (
    BRANCH_PAGE_SIZE,
    COMMIT_PAGE_SIZE,
    MAX_BRANCH_PAGES,
    MAX_COMMIT_PAGES,
    MAX_CONCURRENT_REPOS,
    MAX_REPO_PAGES,
    REPO_PAGE_SIZE,
)
from gitea_activity.config.logger import logger
from gitea_activity.errors import ConfigurationError
from gitea_activity.models.activity import (
    ActivityStats,
    NormalizedCommit,
    RepoAggregate,
    RepoSnapshot,
    RepositoryRef,
    UserAggregate,
    UserSnapshot,
)
from gitea_activity.services.async_pool import async_pool
from gitea_activity.services.commit_normalizer import normalize_commit, resolve_timestamp
from gitea_activity.services.paginator import (
    fetch_all_repositories,
    fetch_branch_names,
    fetch_commits,
)

_NO_ACTIVITY = datetime.min.replace(tzinfo=UTC)


class RunState(Enum):
    IDLE = "idle"
    LISTING_REPOS = "listing_repos"
    COLLECTING = "collecting"
    FINALIZED = "finalized"


def repository_ref(raw: Any) -> RepositoryRef | None:
    """
    Строит RepositoryRef из записи листинга Gitea.

    :param raw: Сырой репозиторий
    :return: RepositoryRef или None, если owner/name определить нельзя
    """
    if not isinstance(raw, dict):
        return None

    full_name = raw.get("full_name")
    if not full_name:
        owner = raw.get("owner") if isinstance(raw.get("owner"), dict) else {}
        owner_name = owner.get("login") or owner.get("username")
        if not owner_name or not raw.get("name"):
            return None
        full_name = f"{owner_name}/{raw['name']}"

    owner_name, _, name = str(full_name).partition("/")
    if not owner_name or not name:
        return None

    return RepositoryRef(
        owner=owner_name,
        name=name,
        full_name=f"{owner_name}/{name}",
        default_branch=raw.get("default_branch") or "",
    )


def _latest(current: datetime | None, candidate: datetime) -> datetime:
    if current is None or candidate > current:
        return candidate
    return current


class ActivityAggregator:
    """
    Изменяемое состояние одного прогона: карты агрегатов по пользователям
    и по репозиториям.

    Каждый merge выполняется целиком без точек приостановки, поэтому
    одновременные задачи одного event loop не могут его разорвать.
    """

    def __init__(self):
        self.users: dict[str, UserAggregate] = {}
        self.repos: dict[str, RepoAggregate] = {}
        self.state = RunState.IDLE

    def merge_repository(
        self, repo: RepoAggregate, commits: list[NormalizedCommit]
    ) -> RepoAggregate | None:
        """
        Добавляет коммиты одного репозитория в обе карты.

        Репозиторий без коммитов в карту не попадает.

        :param repo: Агрегат репозитория, чей seen_shas уже отражает дедупликацию
        :param commits: Уже дедуплицированные коммиты репозитория
        :return: Агрегат репозитория из карты или None
        """
        if not commits:
            return None

        entry = self.repos.setdefault(repo.full_name, repo)
        if entry is not repo:
            entry.seen_shas |= repo.seen_shas

        for commit in commits:
            user = self.users.get(commit.username)
            if user is None:
                user = UserAggregate(
                    username=commit.username, display_name=commit.display_name
                )
                self.users[commit.username] = user

            user.display_name = user.display_name or commit.display_name
            user.commits += 1
            user.lines_changed += commit.lines_changed
            user.repositories.add(entry.full_name)
            user.last_activity = _latest(user.last_activity, commit.timestamp)

            entry.commits += 1
            entry.lines_changed += commit.lines_changed
            entry.contributors.add(commit.username)
            entry.last_activity = _latest(entry.last_activity, commit.timestamp)

        return entry

    def snapshot(self) -> tuple[list[UserSnapshot], list[RepoSnapshot]]:
        """
        Неизменяемые срезы обеих карт, от последней активности к ранней.

        :return: (users, repos)
        """
        users = [
            UserSnapshot(
                username=u.username,
                display_name=u.display_name,
                commits=u.commits,
                lines_changed=u.lines_changed,
                repositories=len(u.repositories),
                last_activity=u.last_activity,
            )
            for u in self.users.values()
        ]
        repos = [
            RepoSnapshot(
                owner=r.owner,
                name=r.name,
                full_name=r.full_name,
                commits=r.commits,
                lines_changed=r.lines_changed,
                contributors=len(r.contributors),
                last_activity=r.last_activity,
            )
            for r in self.repos.values()
        ]

        def by_activity(entry):
            return entry.last_activity or _NO_ACTIVITY

        users.sort(key=by_activity, reverse=True)
        repos.sort(key=by_activity, reverse=True)
        self.state = RunState.FINALIZED
        return users, repos


class ActivityStatsService:
    """
    Сбор активности по всем репозиториям Gitea за последние N дней.

    :param client: GiteaClient (или объект с теми же методами листинга)
    :param max_concurrent_repos: Сколько репозиториев обрабатывается одновременно
    :param clock: Источник текущего времени (UTC)
    :ivar last_run: Состояние последнего запущенного прогона; last_run.state
        показывает, на каком шаге он находится
    :return:
    """

    def __init__(
        self,
        client,
        *,
        max_concurrent_repos: int = MAX_CONCURRENT_REPOS,
        repo_page_size: int = REPO_PAGE_SIZE,
        branch_page_size: int = BRANCH_PAGE_SIZE,
        commit_page_size: int = COMMIT_PAGE_SIZE,
        max_repo_pages: int = MAX_REPO_PAGES,
        max_branch_pages: int = MAX_BRANCH_PAGES,
        max_commit_pages: int = MAX_COMMIT_PAGES,
        clock: Callable[[], datetime] | None = None,
    ):
        if max_concurrent_repos < 1:
            raise ConfigurationError("max_concurrent_repos must be >= 1.")

        self._client = client
        self._max_concurrent_repos = max_concurrent_repos
        self._repo_page_size = repo_page_size
        self._branch_page_size = branch_page_size
        self._commit_page_size = commit_page_size
        self._max_repo_pages = max_repo_pages
        self._max_branch_pages = max_branch_pages
        self._max_commit_pages = max_commit_pages
        self._clock = clock or (lambda: datetime.now(UTC))
        self.last_run: ActivityAggregator | None = None

    async def _list_repositories(self) -> tuple[list[RepositoryRef], bool]:
        walk = await fetch_all_repositories(
            self._client,
            page_size=self._repo_page_size,
            max_pages=self._max_repo_pages,
        )

        refs: dict[str, RepositoryRef] = {}
        for raw in walk.items:
            ref = repository_ref(raw)
            if ref is None:
                logger.warning(
                    "Репозиторий без полного имени пропущен",
                    extra={"repo_id": raw.get("id") if isinstance(raw, dict) else None},
                )
                continue
            refs.setdefault(ref.full_name, ref)

        return list(refs.values()), walk.truncated

    async def _collect_repository(
        self,
        repo: RepositoryRef,
        since: datetime,
        until: datetime,
        include_all_branches: bool,
    ) -> tuple[RepoAggregate, list[NormalizedCommit], bool]:
        """
        Собирает коммиты одного репозитория по всем нужным веткам.

        Один и тот же SHA на разных ветках учитывается один раз: все
        встреченные SHA копятся в seen_shas агрегата репозитория.

        :return: (агрегат репозитория, коммиты, был ли обрезан какой-либо листинг)
        """
        truncated = False

        if include_all_branches:
            walk = await fetch_branch_names(
                self._client,
                repo.owner,
                repo.name,
                page_size=self._branch_page_size,
                max_pages=self._max_branch_pages,
            )
            branches = walk.items or [""]
            truncated |= walk.truncated
        else:
            branches = [repo.default_branch]

        entry = RepoAggregate(
            owner=repo.owner, name=repo.name, full_name=repo.full_name
        )
        accepted: list[NormalizedCommit] = []

        for branch in branches:
            walk = await fetch_commits(
                self._client,
                repo.owner,
                repo.name,
                since=since,
                until=until,
                branch=branch,
                page_size=self._commit_page_size,
                max_pages=self._max_commit_pages,
            )
            truncated |= walk.truncated

            for raw in walk.items:
                if resolve_timestamp(raw) < since:
                    continue

                sha = raw.get("sha") if isinstance(raw, dict) else None
                if sha:
                    if sha in entry.seen_shas:
                        continue
                    entry.seen_shas.add(sha)

                commit = normalize_commit(raw)
                if commit is None:
                    continue
                accepted.append(commit)

        return entry, accepted, truncated

    async def collect_activity(
        self, days: int, include_all_branches: bool = False
    ) -> ActivityStats:
        """
        Агрегирует коммиты всех репозиториев за последние days дней.

        Сбой отдельного репозитория логируется, и репозиторий просто не
        попадает в результат. Фатальна только ошибка получения списка
        репозиториев.

        :param days: Размер окна в днях
        :param include_all_branches: Учитывать все ветки, а не только ветку по умолчанию
        :return: ActivityStats
        """
        until = self._clock()
        since = until - timedelta(days=days)
        aggregator = ActivityAggregator()
        self.last_run = aggregator

        logger.info(
            "Запуск сбора активности",
            extra={"days": days, "all_branches": include_all_branches},
        )

        aggregator.state = RunState.LISTING_REPOS
        repos, partial = await self._list_repositories()
        logger.info("Получен список репозиториев", extra={"count": len(repos)})

        aggregator.state = RunState.COLLECTING

        async def process(repo: RepositoryRef) -> bool:
            entry, commits, truncated = await self._collect_repository(
                repo, since, until, include_all_branches
            )
            aggregator.merge_repository(entry, commits)
            return truncated

        results = await async_pool(self._max_concurrent_repos, repos, process)

        failed = []
        for result in results:
            if result.ok:
                partial |= bool(result.value)
                continue

            failed.append(result.item.full_name)
            logger.error(
                "Не удалось обработать репозиторий",
                extra={"repo": result.item.full_name, "error": str(result.error)},
            )

        users, repo_stats = aggregator.snapshot()
        logger.info(
            "Сбор активности завершён",
            extra={
                "users": len(users),
                "repos": len(repo_stats),
                "failed": len(failed),
            },
        )

        return ActivityStats(
            users=users,
            repos=repo_stats,
            partial=partial or bool(failed),
            failed_repositories=failed,
        )

    async def fetch_user_stats(
        self, days: int, include_all_branches: bool = False
    ) -> list[UserSnapshot]:
        return (await self.collect_activity(days, include_all_branches)).users

    async def fetch_repo_stats(
        self, days: int, include_all_branches: bool = False
    ) -> list[RepoSnapshot]:
        return (await self.collect_activity(days, include_all_branches)).repos
