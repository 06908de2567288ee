import asyncio
from datetime import datetime
from typing import Any
from urllib.parse import quote

from aiohttp import ClientError, ClientSession, ClientTimeout

from gitea_activity.client.rate_limiter import RateLimiter
from gitea_activity.config.logger import logger
from gitea_activity.errors import ConfigurationError, GiteaApiError


def _to_iso(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


class GiteaClient:
    """
    Асинхронный клиент Gitea API: листинги репозиториев, веток и коммитов.

    :param base_url: Базовый URL API, например http://gitea.local/api/v1
    :param api_key: Токен доступа Gitea
    :param timeout: Таймаут одного запроса в секундах
    :param max_concurrent_requests: Максимум одновременных HTTP-запросов
    :param requests_per_second: Ограничение RPS (0 или None: без ограничения)
    :return:
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        *,
        timeout: float = 30,
        max_concurrent_requests: int | None = None,
        requests_per_second: int | None = None,
    ):
        if not api_key:
            raise ConfigurationError(
                "Environment variable URL_GITEA_API_KEY is required."
            )

        logger.info(
            "Инициализация GiteaClient",
            extra={
                "base_url": base_url,
                "timeout": timeout,
                "max_concurrent_requests": max_concurrent_requests,
                "requests_per_second": requests_per_second,
            },
        )

        self._base_url = base_url.rstrip("/")
        self._session = ClientSession(
            headers={
                "Accept": "application/json",
                "Authorization": f"token {api_key}",
            },
            timeout=ClientTimeout(total=timeout),
        )

        self._mcr = asyncio.Semaphore(max_concurrent_requests or 10)
        self._rate_limiter = (
            RateLimiter(requests_per_second) if requests_per_second else None
        )

    async def __aenter__(self):
        """
        Вход в контекстный менеджер.

        :return: self
        """
        return self

    async def __aexit__(self, exc_type, exc, tb):
        """
        Выход из контекстного менеджера. Закрывает HTTP-сессию.

        :param exc_type: Тип исключения
        :param exc: Исключение
        :param tb: Traceback
        :return:
        """
        await self.close()

    async def _safe_request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """
        Выполняет запрос к Gitea API и приводит все сбои к GiteaApiError.

        :param method: HTTP-метод
        :param endpoint: Путь относительно /api/v1
        :param params: Параметры запроса
        :return: JSON-ответ Gitea API
        """
        url = f"{self._base_url}/{endpoint.lstrip('/')}"

        async with self._mcr:
            if self._rate_limiter is not None:
                await self._rate_limiter.acquire()

            logger.debug(
                "Запрос к Gitea API",
                extra={"method": method, "url": url, "params": params},
            )

            try:
                async with self._session.request(method, url, params=params) as resp:
                    if resp.status >= 500:
                        logger.error(
                            "Серверная ошибка Gitea",
                            extra={"method": method, "status": resp.status, "url": url},
                        )
                        raise GiteaApiError(
                            f"Gitea server error {resp.status}", status=resp.status
                        )

                    if resp.status in (401, 403):
                        text = await resp.text()
                        logger.error(
                            "Нет доступа к Gitea API",
                            extra={
                                "method": method,
                                "status": resp.status,
                                "url": url,
                                "response": text,
                            },
                        )
                        raise GiteaApiError(
                            f"Unauthorized/Forbidden: {text}", status=resp.status
                        )

                    if resp.status >= 400:
                        text = await resp.text()
                        logger.error(
                            "Клиентская ошибка Gitea API",
                            extra={
                                "method": method,
                                "status": resp.status,
                                "url": url,
                                "response": text,
                            },
                        )
                        raise GiteaApiError(
                            f"Client error {resp.status}: {text}", status=resp.status
                        )

                    try:
                        return await resp.json(content_type=None)
                    except ValueError as e:
                        logger.error(
                            "Ответ Gitea API не является JSON",
                            extra={"method": method, "url": url},
                        )
                        raise GiteaApiError(
                            f"Invalid JSON from {url}", status=resp.status
                        ) from e

            except ClientError as e:
                logger.error(
                    "Сетевая ошибка Gitea API",
                    extra={"method": method, "url": url, "error": str(e)},
                )
                raise GiteaApiError(f"Network error: {e}") from e

            except TimeoutError as e:
                logger.error(
                    "Таймаут запроса к Gitea API",
                    extra={"method": method, "url": url},
                )
                raise GiteaApiError(f"Request timed out: {url}") from e

    async def _get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        return await self._safe_request("GET", endpoint, params=params)

    async def search_repositories(self, *, page: int, limit: int) -> Any:
        """
        Одна страница поиска репозиториев. Gitea возвращает {"data": [...]}.

        :param page: Номер страницы, начиная с 1
        :param limit: Размер страницы
        :return: JSON-ответ
        """
        return await self._get("repos/search", params={"limit": limit, "page": page})

    async def list_branches(
        self, owner: str, repo: str, *, page: int, limit: int
    ) -> Any:
        """
        Одна страница веток репозитория.

        :param owner: Владелец репозитория
        :param repo: Имя репозитория
        :param page: Номер страницы, начиная с 1
        :param limit: Размер страницы
        :return: Список веток
        """
        return await self._get(
            f"repos/{quote(owner, safe='')}/{quote(repo, safe='')}/branches",
            params={"limit": limit, "page": page},
        )

    async def list_commits(
        self,
        owner: str,
        repo: str,
        *,
        page: int,
        limit: int,
        since: datetime | None = None,
        until: datetime | None = None,
        sha: str | None = None,
    ) -> Any:
        """
        Одна страница коммитов репозитория (от новых к старым).

        Запрашивается только статистика изменений, без файлов и верификации.

        :param owner: Владелец репозитория
        :param repo: Имя репозитория
        :param page: Номер страницы, начиная с 1
        :param limit: Размер страницы
        :param since: Нижняя граница окна
        :param until: Верхняя граница окна
        :param sha: Ветка или SHA, от которого идёт история
        :return: Список коммитов
        """
        params: dict[str, Any] = {
            "limit": limit,
            "page": page,
            "stat": "true",
            "files": "false",
            "verification": "false",
        }
        if since is not None:
            params["since"] = _to_iso(since)
        if until is not None:
            params["until"] = _to_iso(until)
        if sha:
            params["sha"] = sha

        return await self._get(
            f"repos/{quote(owner, safe='')}/{quote(repo, safe='')}/commits",
            params=params,
        )

    async def close(self):
        """
        Закрытие HTTP-сессии Gitea клиента.

        :return:
        """
        logger.info("Закрытие Gitea HTTP-сессии")

        if self._rate_limiter is not None:
            await self._rate_limiter.close()

        await self._session.close()
