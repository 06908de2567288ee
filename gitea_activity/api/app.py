from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import AsyncIterator

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from gitea_activity.api.validation import parse_all_branches, validate_days_param
from gitea_activity.client.gitea_client import GiteaClient
from gitea_activity.config.config import (
    BASE_PATH,
    GITEA_API_KEY,
    GITEA_HOST,
    GITEA_PORT,
    MAX_CONCURRENT_REQUESTS,
    REQUEST_TIMEOUT,
    REQUESTS_PER_SECOND,
    build_base_url,
    normalize_base_path,
)
from gitea_activity.config.logger import logger
from gitea_activity.export.workbook import (
    XLSX_MEDIA_TYPE,
    build_activity_workbook,
    export_filename,
)
from gitea_activity.models.activity import to_iso
from gitea_activity.services.stats_service import ActivityStatsService


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Контекст жизненного цикла приложения FastAPI.

    Открывает HTTP-сессию Gitea при старте и закрывает её при остановке.
    Если сервис уже передан в create_app(), клиент не создаётся.

    :param app: Экземпляр приложения FastAPI.
    :return: None
    """
    if getattr(app.state, "stats_service", None) is not None:
        yield
        return

    client = GiteaClient(
        build_base_url(GITEA_HOST, GITEA_PORT),
        GITEA_API_KEY,
        timeout=REQUEST_TIMEOUT,
        max_concurrent_requests=MAX_CONCURRENT_REQUESTS,
        requests_per_second=REQUESTS_PER_SECOND,
    )
    app.state.stats_service = ActivityStatsService(client)
    logger.info("Gitea client created")

    try:
        yield
    finally:
        await client.close()
        logger.info("Gitea client closed")


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"message": message})


def _bad_gateway(message: str) -> JSONResponse:
    return JSONResponse(status_code=502, content={"message": message})


async def get_stats(
    request: Request, days: str | None = None, allBranches: str | None = None
):
    """
    Активность пользователей и репозиториев за окно days.

    :param request: Текущий HTTP-запрос.
    :param days: Окно в днях (1, 7, 15 или 30)
    :param allBranches: "true", чтобы учитывать все ветки
    :return: JSON с users и repos
    """
    window, error = validate_days_param(days)
    if error:
        return _bad_request(error)

    include_all = parse_all_branches(allBranches)
    try:
        stats = await request.app.state.stats_service.collect_activity(
            window, include_all
        )
    except Exception:
        logger.exception("Failed to collect stats")
        return _bad_gateway("Could not fetch statistics from Gitea.")

    return {
        "generatedAt": to_iso(datetime.now(UTC)),
        "days": window,
        "allBranches": include_all,
        "partial": stats.partial,
        **stats.to_dict(),
    }


async def get_repos(
    request: Request, days: str | None = None, allBranches: str | None = None
):
    """
    Активность только по репозиториям.

    :param request: Текущий HTTP-запрос.
    :param days: Окно в днях
    :param allBranches: "true", чтобы учитывать все ветки
    :return: JSON с repos
    """
    window, error = validate_days_param(days)
    if error:
        return _bad_request(error)

    include_all = parse_all_branches(allBranches)
    try:
        stats = await request.app.state.stats_service.collect_activity(
            window, include_all
        )
    except Exception:
        logger.exception("Failed to collect repo stats")
        return _bad_gateway("Could not fetch repository statistics from Gitea.")

    return {
        "generatedAt": to_iso(datetime.now(UTC)),
        "days": window,
        "allBranches": include_all,
        "partial": stats.partial,
        "repos": [r.to_dict() for r in stats.repos],
    }


async def export_stats(
    request: Request, days: str | None = None, allBranches: str | None = None
):
    """
    Тот же отчёт, что /api/stats, в виде xlsx-файла.

    :param request: Текущий HTTP-запрос.
    :param days: Окно в днях
    :param allBranches: "true", чтобы учитывать все ветки
    :return: xlsx-вложение
    """
    window, error = validate_days_param(days)
    if error:
        return _bad_request(error)

    include_all = parse_all_branches(allBranches)
    try:
        stats = await request.app.state.stats_service.collect_activity(
            window, include_all
        )
        content = build_activity_workbook(stats.users, stats.repos)
    except Exception:
        logger.exception("Failed to generate Excel report")
        return _bad_gateway("Could not generate the Excel report.")

    filename = export_filename(window, include_all)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def register_routes(app: FastAPI, base_path: str) -> None:
    """
    Регистрация роутов приложения.

    :param app: Экземпляр приложения FastAPI.
    :param base_path: Префикс всех маршрутов
    """
    prefix = "" if base_path == "/" else base_path

    router = APIRouter(prefix=f"{prefix}/api")
    router.add_api_route(path="/stats", endpoint=get_stats)
    router.add_api_route(path="/stats/export", endpoint=export_stats)
    router.add_api_route(path="/repos", endpoint=get_repos)
    app.include_router(router)

    if prefix:

        async def redirect_to_base():
            return RedirectResponse(url=f"{prefix}/")

        app.add_api_route("/", redirect_to_base, include_in_schema=False)


def create_app(
    stats_service: ActivityStatsService | None = None, base_path: str | None = None
) -> FastAPI:
    """
    Фабрика создания экземпляра FastAPI.

    :param stats_service: Готовый сервис статистики (по умолчанию создаётся в lifespan)
    :param base_path: Префикс маршрутов (по умолчанию BASE_PATH)
    :return: Настроенный экземпляр приложения FastAPI.
    """
    app = FastAPI(title="Gitea activity", lifespan=lifespan)
    app.state.stats_service = stats_service
    register_routes(app, normalize_base_path(base_path or BASE_PATH))
    return app
