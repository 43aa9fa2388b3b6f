# File: paid_insights/handlers/traffic_handler.py
import time
import logging
from flask import Blueprint, Response, current_app, jsonify, request

from ..errors import PaidTrafficError
from ..queries.traffic_query import DIMENSIONS
from ..services.site_service import SessionAccessControl

LOG = logging.getLogger(__name__)

traffic_blueprint = Blueprint("traffic", __name__)


# ─────────────────────────────────────────────
# 1) Error rendering
# ─────────────────────────────────────────────
@traffic_blueprint.errorhandler(PaidTrafficError)
def handle_paid_traffic_error(error: PaidTrafficError):
    return jsonify({"message": error.message}), error.status_code


# ─────────────────────────────────────────────
# 2) Request parameters (query string + optional JSON body, body wins)
# ─────────────────────────────────────────────
def get_request_data() -> dict:
    data = request.args.to_dict()
    body = request.get_json(silent=True)
    if isinstance(body, dict):
        data.update(body)
    return data


# ─────────────────────────────────────────────
# 3) One GET route per dimension spec
# ─────────────────────────────────────────────
def make_traffic_view(dimension: str):
    def view(site_id):
        t0 = time.time()
        service = current_app.extensions["paid_traffic_service"]
        result = service.fetch(site_id, dimension, get_request_data(), SessionAccessControl())

        LOG.info("paid traffic %s for %s served in %.3fs (cache hit: %s)",
                 dimension, site_id, time.time() - t0, result.cache_hit)
        return Response(
            result.body,
            status=200,
            mimetype="application/json",
            headers={
                "Content-Encoding": "gzip",
                "X-Cache": "HIT" if result.cache_hit else "MISS",
            },
        )

    view.__name__ = f"get_paid_traffic_by_{dimension}"
    return view


for _spec in DIMENSIONS.values():
    traffic_blueprint.add_url_rule(
        f"/sites/<site_id>/traffic/paid/{_spec.slug}",
        endpoint=_spec.name,
        view_func=make_traffic_view(_spec.name),
        methods=["GET"],
    )
