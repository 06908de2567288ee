class ConfigurationError(ValueError):
    """Некорректная конфигурация: ошибка фатальная, работа не начинается."""


class GiteaApiError(RuntimeError):
    """
    Ошибка обращения к Gitea API (сеть, таймаут или HTTP-статус ошибки).

    :param message: Текст ошибки
    :param status: HTTP-статус ответа, если он был получен
    :return:
    """

    def __init__(self, message: str, *, status: int | None = None):
        super().__init__(message)
        self.status = status
