"""Prometheus scrape endpoint."""

from flask import Blueprint, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from playerlink import metrics

metrics_bp = Blueprint("metrics", __name__)


@metrics_bp.route("/metrics/prometheus")
def prometheus_metrics():
    return Response(generate_latest(metrics.registry), content_type=CONTENT_TYPE_LATEST)
