import logging
import time

from flask import Blueprint, request, jsonify

from acquisition_pipeline import AcquisitionPipeline
from browser_engine import get_browser_engine
from error_handler import EngineNotInitializedError, InputError, handle_scrape_error
from scrape_config import get_scrape_config

scrape_routes = Blueprint("scrape_routes", __name__)


@scrape_routes.route("/scrape", methods=["POST"])
def scrape():
    """Acquire transcript and metadata for the URL in the JSON body"""
    data = request.get_json(silent=True) or {}
    url = data.get("url") if isinstance(data, dict) else None
    start_time = time.time()

    try:
        if not isinstance(url, str) or not url.strip():
            raise InputError("URL is required in request body")

        engine = get_browser_engine()
        if not engine.is_ready:
            raise EngineNotInitializedError("Browser not initialized")

        config = get_scrape_config()
        pipeline = AcquisitionPipeline(engine, config)
        result = engine.run(pipeline.acquire(url), timeout=config.request_timeout)

    except Exception as e:
        duration_ms = int((time.time() - start_time) * 1000)
        payload, status = handle_scrape_error(url, e, duration_ms)
        return jsonify(payload), status

    logging.info(f"Scrape succeeded for {result.source_url} in {int((time.time() - start_time) * 1000)}ms")
    return jsonify({"success": True, "data": result.to_dict()})
