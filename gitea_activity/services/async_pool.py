import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

from gitea_activity.errors import ConfigurationError

T = TypeVar("T")
R = TypeVar("R")


@dataclass(slots=True)
class UnitResult(Generic[T, R]):
    """Результат одной единицы работы: значение либо перехваченная ошибка."""

    item: T
    value: R | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def async_pool(
    limit: int,
    items: Iterable[T],
    worker: Callable[[T], Awaitable[R]],
) -> list[UnitResult[T, R]]:
    """
    Запускает worker для каждого элемента, держа в работе не больше limit задач.

    Ошибка одной задачи не прерывает остальные: она сохраняется в её
    UnitResult. Результаты возвращаются в порядке входных элементов.

    :param limit: Максимум одновременно выполняемых задач (>= 1)
    :param items: Элементы для обработки
    :param worker: Асинхронная функция обработки одного элемента
    :return: Список UnitResult
    """
    if limit < 1:
        raise ConfigurationError("Concurrency limit must be >= 1.")

    items = list(items)
    semaphore = asyncio.Semaphore(limit)

    async def run(item: T) -> UnitResult[T, R]:
        async with semaphore:
            try:
                return UnitResult(item=item, value=await worker(item))
            except Exception as e:
                return UnitResult(item=item, error=e)

    return await asyncio.gather(*(run(item) for item in items))
