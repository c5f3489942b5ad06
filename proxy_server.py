"""
Local CORS proxy for the JPL close-approach API.

Run with ``python proxy_server.py`` and point the app at
``http://localhost:3000/api/asteroids`` through ``ASTEROID_PROXY_URL``.
"""
import logging

import requests
from flask import Flask, jsonify, request

import config
from cad_data import request_upstream

logger = logging.getLogger(__name__)

app = Flask(__name__)


@app.after_request
def add_cors_headers(response):
    response.headers['Access-Control-Allow-Origin'] = '*'
    return response


@app.get("/api/asteroids")
def asteroids():
    start_date = request.args.get("startDate")
    end_date = request.args.get("endDate")
    try:
        resp = request_upstream(start_date, end_date)
        data = resp.json()
    except (requests.RequestException, ValueError):
        logger.exception("Upstream request failed for %s..%s", start_date, end_date)
        return jsonify({"error": "Failed to fetch data from NASA"}), 500
    if not resp.ok:
        logger.warning("Upstream answered %d for %s..%s", resp.status_code, start_date, end_date)
    return jsonify(data), resp.status_code


if __name__ == "__main__":
    config.setup_logging()
    logger.info("Proxy running on port %d", config.PROXY_PORT)
    app.run(config.PROXY_HOST, config.PROXY_PORT)
