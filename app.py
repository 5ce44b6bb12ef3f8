import os

from flask import Flask

from browser_engine import get_browser_engine
from error_handler import get_error_stats
from routes import scrape_routes
from scrape_config import get_scrape_config

# create the app
app = Flask(__name__)
app.json.sort_keys = False

app.register_blueprint(scrape_routes)


@app.route('/health')
@app.route('/healthz')
def health_check():
    """Health check reporting engine readiness and error counts"""
    engine = get_browser_engine()
    config = get_scrape_config()

    health_info = {
        'status': 'healthy',
        'message': 'Transcript scraper is running',
        'browser_ready': engine.is_ready,
        'timeouts': config.to_dict()['timeouts'],
    }

    if os.getenv('EXPOSE_HEALTH_DIAGNOSTICS', 'false').lower() == 'true':
        health_info['errors'] = get_error_stats()

    if not engine.is_ready:
        health_info['status'] = 'unhealthy'
        health_info['message'] = 'Browser not initialized'
        return health_info, 503

    return health_info, 200
