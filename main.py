import os
import signal
import sys

from dotenv import load_dotenv

# Load .env before any configuration is read
load_dotenv()

from logging_setup import configure_logging, get_logger

configure_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    use_json=os.getenv("USE_JSON_LOGS", "true").lower() == "true"
)

from app import app  # noqa: E402
from browser_engine import get_browser_engine, shutdown_browser_engine  # noqa: E402
from scrape_config import get_scrape_config  # noqa: E402

logger = get_logger(__name__)


def _handle_shutdown(signum, frame):
    logger.info(f"Received {signal.Signals(signum).name}, shutting down")
    shutdown_browser_engine()
    sys.exit(0)


def main():
    config = get_scrape_config()

    try:
        get_browser_engine().start()
    except Exception:
        logger.error("Browser failed to start, exiting")
        sys.exit(1)

    signal.signal(signal.SIGINT, _handle_shutdown)
    signal.signal(signal.SIGTERM, _handle_shutdown)

    logger.info(f"Server is running on http://{config.host}:{config.port}")
    app.run(host=config.host, port=config.port, debug=False, threaded=True, use_reloader=False)


if __name__ == "__main__":
    main()
