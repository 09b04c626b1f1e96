from typing import Optional

import uvicorn
from dotenv import load_dotenv

from insight_dash.config import settings
from insight_dash.config.credentials import CredentialStore
from insight_dash.utils.logger import get_logger

logger = get_logger(__name__)


def _log_startup(credentials: CredentialStore) -> None:
    logger.info("=" * 50)
    logger.info(f"STARTING {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {'Development' if settings.DEBUG else 'Production'}")
    logger.info(f"LLM Model: {settings.DEFAULT_MODEL}")
    if not credentials.has_api_key():
        logger.warning(
            f"No LLM API key found (env or {credentials.path}); "
            "AI insights will return fallback messages until one is saved."
        )
    logger.info(
        f"Chart points <= {settings.MAX_CHART_POINTS}, "
        f"KPIs <= {settings.KPI_LIMIT}, default entries {settings.DEFAULT_ENTRY_COUNT}"
    )
    logger.info("=" * 50)


def start(host: Optional[str] = None, port: Optional[int] = None):
    """
    Entry point for the `insight-dash` command: serves the dashboard API.
    Host and port default to the HOST / PORT settings.
    """
    load_dotenv()
    _log_startup(CredentialStore())

    try:
        uvicorn.run(
            "insight_dash.api.routes:app",
            host=host or settings.HOST,
            port=port or settings.PORT,
            reload=settings.DEBUG,
            log_level=settings.LOG_LEVEL.lower()
        )
    except KeyboardInterrupt:
        logger.info("Shutting down server...")
    except Exception as e:
        logger.error(f"Failed to start server: {str(e)}")
        raise


if __name__ == "__main__":
    start()
