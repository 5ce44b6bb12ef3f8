"""
WSGI entrypoint for the transcript scraper (gunicorn).

Run with a single worker process; the browser engine is per process:
    gunicorn --workers 1 --threads 8 --timeout 200 wsgi:app
"""

import atexit
import logging
import os

from dotenv import load_dotenv

load_dotenv()

from logging_setup import configure_logging  # noqa: E402

configure_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    use_json=os.getenv("USE_JSON_LOGS", "true").lower() == "true"
)

# Align level with gunicorn's error log if present
_guni = logging.getLogger('gunicorn.error')
if _guni.handlers:
    logging.root.setLevel(_guni.level)

from app import app  # noqa: E402
from browser_engine import get_browser_engine, shutdown_browser_engine  # noqa: E402

get_browser_engine().start()
atexit.register(shutdown_browser_engine)

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 3000))
    app.run(host="0.0.0.0", port=port)
