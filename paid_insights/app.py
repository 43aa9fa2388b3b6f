# File: paid_insights/app.py
import time, logging
_boot = time.time()

from flask import Flask, jsonify

from .config import Settings, load_settings
from .handlers.traffic_handler import traffic_blueprint
from .services.cache_store import GcsCacheStore
from .services.paid_traffic_service import PaidTrafficService
from .services.query_engine import BigQueryEngine
from .services.site_service import SiteRepository

LOG = logging.getLogger(__name__)


def create_app(settings: Settings = None, query_engine=None, site_repository=None, cache_store=None) -> Flask:
    """
    Build the Flask app. Collaborators default to BigQuery / GCS clients;
    tests inject in-memory fakes.
    """
    settings = settings or load_settings()

    # ─────────────────────────────────────────────
    # 1) Logging
    # ─────────────────────────────────────────────
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s"
    )

    # ─────────────────────────────────────────────
    # 2) Collaborators
    # ─────────────────────────────────────────────
    if query_engine is None:
        query_engine = BigQueryEngine(project_id=settings.project_id)
    if site_repository is None:
        site_repository = SiteRepository(query_engine, settings.sites_table)
    if cache_store is None and settings.cache_enabled:
        cache_store = GcsCacheStore(settings.cache_bucket, project_id=settings.project_id)
    if not settings.cache_enabled:
        LOG.warning("PAID_TRAFFIC_CACHE_BUCKET not set - every request will query the engine")

    # ─────────────────────────────────────────────
    # 3) Flask app
    # ─────────────────────────────────────────────
    app = Flask(__name__)
    app.secret_key = settings.secret_key
    app.config["PAID_TRAFFIC_SETTINGS"] = settings
    app.extensions["paid_traffic_service"] = PaidTrafficService(
        settings,
        query_engine=query_engine,
        site_repository=site_repository,
        cache_store=cache_store,
    )

    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify({"status": "ok"}), 200

    app.register_blueprint(traffic_blueprint)

    LOG.info("app created in %.1fs", time.time() - _boot)
    LOG.debug("settings: %s", settings.describe())
    return app


if __name__ == "__main__":
    import os
    app = create_app()
    debug_mode = os.getenv("FLASK_ENV", "production") == "development"
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "8080")), debug=debug_mode)
