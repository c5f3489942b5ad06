"""
Close-approach data: fetching, diameter estimation and normalization.

The JPL SSD close-approach API (cad.api) answers with two parallel arrays,
``fields`` (column names) and ``data`` (positional rows). Everything here
turns that payload into keyed records with diameters in metres.
"""
import logging
import math

import pandas as pd
import requests

import config

logger = logging.getLogger(__name__)

DEFAULT_ALBEDO = 0.14

# Fixed query sent upstream on top of the date window
UPSTREAM_PARAMS = {
    "diameter": "true",
    "fullname": "true",
    "dist-max": "70LD",
    "limit": "1000",
}


def estimate_diameter(h, albedo=DEFAULT_ALBEDO):
    """Diameter in km from absolute magnitude ``h``. NaN in, NaN out."""
    return (1329 / math.sqrt(albedo)) * 10 ** (-0.2 * h)


def _to_float(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def rows_to_records(payload):
    """Zip the ``fields`` list with every row of ``data``, keeping row order."""
    fields = payload.get("fields") or []
    return [dict(zip(fields, row)) for row in payload.get("data") or []]


def fill_missing_diameters(records):
    """
    Return copies of ``records`` with ``diameter`` in metres.

    An upstream diameter (km) wins when it parses to a finite number,
    otherwise the diameter is estimated from ``h``.
    """
    filled = []
    for item in records:
        diameter_km = _to_float(item.get("diameter"))
        if not math.isfinite(diameter_km):
            diameter_km = estimate_diameter(_to_float(item.get("h")))
        filled.append({**item, "diameter": diameter_km * 1000})
    return filled


def normalize_payload(payload):
    records = fill_missing_diameters(rows_to_records(payload))
    logger.info("Normalized %d close-approach rows", len(records))
    return records


def upstream_params(start_date, end_date):
    return {
        "date-min": start_date or config.DEFAULT_START_DATE,
        "date-max": end_date or config.DEFAULT_END_DATE,
        **UPSTREAM_PARAMS,
    }


def request_upstream(start_date, end_date, timeout=None):
    """Raw cad.api response; the proxies forward its status and JSON as-is."""
    return requests.get(
        config.CAD_API_URL,
        params=upstream_params(start_date, end_date),
        timeout=timeout or config.CAD_TIMEOUT,
    )


def fetch_upstream(start_date, end_date, timeout=None):
    """Query cad.api directly and return the decoded JSON."""
    resp = request_upstream(start_date, end_date, timeout=timeout)
    resp.raise_for_status()
    return resp.json()


def fetch_close_approaches(start_date, end_date, proxy_url=None, timeout=None):
    """
    Fetch the raw payload for a date window.

    Goes through the proxy when ``proxy_url`` is set, straight to the
    upstream API otherwise. Errors propagate to the caller.
    """
    if not proxy_url:
        return fetch_upstream(start_date, end_date, timeout=timeout)

    resp = requests.get(
        proxy_url,
        params={"startDate": str(start_date), "endDate": str(end_date)},
        timeout=timeout or config.CAD_TIMEOUT,
    )
    resp.raise_for_status()
    return resp.json()


def records_frame(placed, visible_only=False):
    """Tabulate placed asteroids for the data tab, metrics and CSV export."""
    rows = []
    for entry in placed:
        if visible_only and not entry.body.visible:
            continue
        rec = entry.record
        rows.append({
            "name": rec.name,
            "close_approach_date": rec.close_approach_date,
            "distance_ld": rec.distance_ld,
            "distance_au": rec.distance_au,
            "diameter_m": rec.diameter_m,
            "velocity_km_s": rec.velocity_km_s,
        })
    return pd.DataFrame(
        rows,
        columns=[
            "name",
            "close_approach_date",
            "distance_ld",
            "distance_au",
            "diameter_m",
            "velocity_km_s",
        ],
    )
