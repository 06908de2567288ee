import configparser
import os
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

from dotenv import load_dotenv

from gitea_activity.errors import ConfigurationError

load_dotenv()

config_path = Path(__file__).resolve().parent.parent.parent / "config.ini"

config = configparser.ConfigParser()
config.read(config_path)

GITEA_HOST = os.getenv("URL_GITEA_HOST")
GITEA_PORT = os.getenv("URL_GITEA_PORT")
GITEA_API_KEY = os.getenv("URL_GITEA_API_KEY")

REPO_PAGE_SIZE = config.getint("Gitea", "repo_page_size", fallback=50)
BRANCH_PAGE_SIZE = config.getint("Gitea", "branch_page_size", fallback=50)
COMMIT_PAGE_SIZE = config.getint("Gitea", "commit_page_size", fallback=50)

MAX_REPO_PAGES = config.getint("Gitea", "max_repo_pages", fallback=200)
MAX_BRANCH_PAGES = config.getint("Gitea", "max_branch_pages", fallback=200)
MAX_COMMIT_PAGES = config.getint("Gitea", "max_commit_pages", fallback=200)

MAX_CONCURRENT_REPOS = config.getint("Gitea", "max_concurrent_repos", fallback=4)
REQUEST_TIMEOUT = config.getint("Gitea", "request_timeout", fallback=30)
MAX_CONCURRENT_REQUESTS = config.getint(
    "Gitea", "max_concurrent_requests", fallback=10
)
REQUESTS_PER_SECOND = config.getint("Gitea", "requests_per_second", fallback=0)

PORT = int(os.getenv("PORT") or config.getint("Server", "port", fallback=4040))
BASE_PATH = os.getenv("BASE_PATH") or config.get("Server", "base_path", fallback="/")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def build_base_url(host: str | None, port: str | None = None) -> str:
    """
    Формирует базовый URL Gitea API из адреса хоста и необязательного порта.

    Порт подставляется, только если в адресе хоста он не указан явно.

    :param host: Адрес Gitea вместе со схемой, например http://gitea.local
    :param port: Порт Gitea
    :return: URL вида http://gitea.local:3000/api/v1
    """
    if not host:
        raise ConfigurationError("Environment variable URL_GITEA_HOST is required.")

    parts = urlsplit(host.strip())
    if not parts.scheme or not parts.netloc:
        raise ConfigurationError(
            'URL_GITEA_HOST must include the scheme, e.g. "http://gitea.local".'
        )

    netloc = parts.netloc
    if port and parts.port is None:
        netloc = f"{netloc}:{port}"

    path = parts.path.rstrip("/") + "/api/v1"
    return urlunsplit((parts.scheme, netloc, path, "", ""))


def normalize_base_path(value: str | None) -> str:
    """
    Приводит префикс маршрутов к виду /prefix (без завершающего слеша).

    :param value: Значение BASE_PATH
    :return: Нормализованный префикс или "/"
    """
    if not value:
        return "/"

    base = value.strip()
    if not base.startswith("/"):
        base = f"/{base}"

    base = base.rstrip("/")
    return base or "/"
