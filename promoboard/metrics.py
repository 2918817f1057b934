"""Prometheus metrics for the engagement gate, trending scorer and feed."""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

votes_total = Counter(
    "promoboard_votes_total",
    "Vote attempts by outcome",
    ["outcome"],
)
bumps_total = Counter(
    "promoboard_bumps_total",
    "Bump attempts by tier, type and outcome",
    ["tier", "bump_type", "outcome"],
)
activity_appends_total = Counter(
    "promoboard_activity_appends_total",
    "Activity feed appends by outcome",
    ["outcome"],
)
trending_listings_scored = Counter(
    "promoboard_trending_listings_scored_total",
    "Listings scored by the trending recompute, by outcome",
    ["outcome"],
)
trending_duration = Histogram(
    "promoboard_trending_recompute_seconds",
    "Duration of a full trending recompute",
    buckets=[0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0],
)
notifications_total = Counter(
    "promoboard_notifications_total",
    "Discord notifications by outcome",
    ["outcome"],
)


async def metrics_endpoint() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
