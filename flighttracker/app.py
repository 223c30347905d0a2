"""
Flight tracker Flask application.

Main entry point. Assembles one store, one fetcher, one notifier and one
scheduler explicitly, then registers the API routes.

Usage:
    python -m flighttracker.app

Or with gunicorn (single worker, the scheduler is in-process):
    gunicorn 'flighttracker.app:create_app()'
"""

import logging
import os
from typing import Optional

from flask import Flask
from flask_cors import CORS

from flighttracker.config import AppConfig, config as default_config
from flighttracker.exceptions import StoreError
from flighttracker.api import flights_bp, admin_bp, stream_bp
from flighttracker.ingestion import OpenSkyClient
from flighttracker.models import make_engine, make_session_factory, init_db
from flighttracker.notifier import Notifier
from flighttracker.scheduler import FlightScheduler
from flighttracker.services import TrackerService
from flighttracker.store import FlightStore

logger = logging.getLogger(__name__)


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


def create_app(
    app_config: Optional[AppConfig] = None,
    start_scheduler: bool = True,
    fetcher: Optional[OpenSkyClient] = None,
) -> Flask:
    """
    Application factory for Flask.

    Args:
        app_config: Configuration (module singleton if None)
        start_scheduler: Whether to start the periodic cycles.
                         Set to False for testing.
        fetcher: Snapshot fetcher (built from config if None)

    Returns:
        Configured Flask application instance.
    """
    app_config = app_config or default_config

    app = Flask(__name__)
    app.config['SECRET_KEY'] = app_config.secret_key

    # Enable CORS for API endpoints
    CORS(app, resources={r'/api/*': {'origins': '*'}})

    # Initialize database
    logger.info('Initializing database...')
    engine = make_engine(app_config.database, echo=app_config.debug)
    init_db(engine)

    store = FlightStore(make_session_factory(engine))
    notifier = Notifier(max_queue_size=app_config.notifier.queue_size)
    fetcher = fetcher or OpenSkyClient.from_config(app_config.opensky)
    scheduler = FlightScheduler(fetcher, store, notifier, app_config)

    app.config['FLIGHT_STORE'] = store
    app.config['NOTIFIER'] = notifier
    app.config['SCHEDULER'] = scheduler
    app.config['TRACKER_SERVICE'] = TrackerService(store, scheduler)

    # Register API blueprints
    app.register_blueprint(flights_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(stream_bp)

    if start_scheduler:
        scheduler.start()
        logger.info(f'Polling {app_config.opensky.api_url}')

    @app.route('/health')
    def health():
        """Simple health check endpoint."""
        return {'status': 'ok'}

    # -------------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------------

    @app.errorhandler(404)
    def not_found(e):
        return {'error': 'Not found'}, 404

    @app.errorhandler(StoreError)
    def store_unavailable(e):
        logger.error(f'Storage error: {e}')
        return {'success': False, 'error': str(e)}, 503

    @app.errorhandler(500)
    def server_error(e):
        logger.error(f'Server error: {e}')
        return {'success': False, 'error': 'Internal server error'}, 500

    return app


def run_development_server():
    """Run the development server."""
    configure_logging(default_config.debug)
    app = create_app()

    port = int(os.environ.get('PORT', 5000))
    logger.info(f'Starting flight tracker on http://localhost:{port}')

    try:
        app.run(
            host='0.0.0.0',
            port=port,
            debug=default_config.debug,
            use_reloader=False,  # Reloader would start a second scheduler
            threaded=True,
        )
    finally:
        app.config['SCHEDULER'].stop()


if __name__ == '__main__':
    run_development_server()
