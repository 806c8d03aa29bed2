from reviewbot.config import SettingsError, load_server_settings
from reviewbot.logger import get_logger

logger = get_logger()


def main() -> None:
    try:
        server_settings = load_server_settings()
    except SettingsError as exc:
        logger.error(f"Failed to load server settings: {exc}")
        raise SystemExit(1) from exc

    logger.info(
        "Starting AI Code Reviewer webhook server on {host}:{port}",
        host=server_settings.host,
        port=server_settings.port,
    )

    import uvicorn

    uvicorn.run(
        app="reviewbot.main:app",
        host=server_settings.host,
        port=server_settings.port,
        workers=1,
        log_level="info",
    )


if __name__ == "__main__":
    main()
