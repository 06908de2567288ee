import asyncio

from gitea_activity.config.logger import logger


class RateLimiter:
    """
    Ограничитель количества запросов к Gitea в секунду.

    Фоновая задача восстановления лимита запускается при первом acquire(),
    поэтому объект можно создавать вне работающего event loop.

    :param rate_limit: Максимальное число запросов в секунду (RPS)
    :return:
    """

    def __init__(self, rate_limit: int):
        if rate_limit < 1:
            raise ValueError("rate_limit must be >= 1")

        self._rate_limit = rate_limit
        self._slots = asyncio.Semaphore(rate_limit)
        self._in_use = 0
        self._reset_task: asyncio.Task | None = None

        logger.info("Инициализация RateLimiter", extra={"rate_limit": rate_limit})

    async def _reset_loop(self) -> None:
        """
        Каждую секунду возвращает израсходованные слоты.
        """
        while True:
            await asyncio.sleep(1)

            to_release, self._in_use = self._in_use, 0
            for _ in range(to_release):
                self._slots.release()

            if to_release:
                logger.debug(
                    "RateLimiter тик",
                    extra={"released": to_release, "rate_limit": self._rate_limit},
                )

    async def acquire(self) -> None:
        """
        Получение одного слота лимита.

        :return:
        """
        if self._reset_task is None:
            self._reset_task = asyncio.create_task(self._reset_loop())

        await self._slots.acquire()
        self._in_use += 1

    async def close(self) -> None:
        """
        Останавливает фоновую задачу восстановления лимита.

        :return:
        """
        if self._reset_task is None:
            return

        logger.info("Закрытие RateLimiter")
        self._reset_task.cancel()

        try:
            await self._reset_task
        except asyncio.CancelledError:
            pass

        self._reset_task = None
