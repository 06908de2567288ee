import uvicorn

from gitea_activity.config.config import PORT
from gitea_activity.config.logger import logger


def main() -> None:
    logger.info("Starting Gitea activity server", extra={"port": PORT})
    uvicorn.run(
        "gitea_activity.api.app:create_app", factory=True, host="0.0.0.0", port=PORT
    )


if __name__ == "__main__":
    main()
