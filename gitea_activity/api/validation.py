ALLOWED_WINDOWS = (1, 7, 15, 30)
DEFAULT_WINDOW = 7


def validate_days_param(raw: str | int | None) -> tuple[int | None, str | None]:
    """
    Проверяет параметр days из запроса.

    :param raw: Сырое значение параметра
    :return: (значение, None) или (None, текст ошибки)
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return DEFAULT_WINDOW, None

    try:
        value = int(str(raw).strip())
    except ValueError:
        value = None

    if value not in ALLOWED_WINDOWS:
        allowed = ", ".join(str(w) for w in ALLOWED_WINDOWS)
        return None, f'Parameter "days" must be one of: {allowed}'

    return value, None


def parse_all_branches(raw: str | None) -> bool:
    return str(raw).strip().lower() == "true"
