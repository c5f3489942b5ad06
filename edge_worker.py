"""
Edge deployment of the close-approach proxy as a bare WSGI callable.

Same contract as ``proxy_server`` but without error handling: an upstream
failure escapes to the hosting server. Serve with any WSGI host, e.g.
``python edge_worker.py`` for Werkzeug's development server.
"""
import json
import logging

from werkzeug.serving import run_simple
from werkzeug.wrappers import Request, Response

import config
from cad_data import request_upstream

logger = logging.getLogger(__name__)

API_PATH = "/api/asteroids"


@Request.application
def application(request):
    if request.path != API_PATH:
        return Response("Not Found", status=404)

    resp = request_upstream(request.args.get("startDate"), request.args.get("endDate"))
    return Response(
        json.dumps(resp.json()),
        status=resp.status_code,
        headers={
            "Content-Type": "application/json",
            "Access-Control-Allow-Origin": "*",
        },
    )


def main():
    config.setup_logging()
    logger.info("Edge worker running on port %d", config.EDGE_PORT)
    run_simple(config.PROXY_HOST, config.EDGE_PORT, application)


if __name__ == "__main__":
    main()
