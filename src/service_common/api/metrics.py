"""
Prometheus metrics endpoint.

Exposes metrics in Prometheus text format for scraping.
"""

import structlog
from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="""
    Prometheus metrics endpoint in standard text format.

    **Key Metrics:**
    - http_requests_total{method,endpoint,status_code} - Logged HTTP requests
    - http_request_duration_seconds{method,endpoint} - Request latency histogram
    - handled_exceptions_total{type} - Exceptions rendered as API errors
    - authentication_failures_total{reason} - Rejected bearer tokens
    """,
)
async def get_metrics(request: Request) -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format for scraping.
    """
    try:
        metrics_collector = getattr(request.app.state, "metrics", None)

        if not metrics_collector:
            logger.warning("Metrics collector not initialized")
            return Response(
                content="# Metrics collector not initialized\n",
                media_type=CONTENT_TYPE_LATEST,
            )

        metrics_data = generate_latest(metrics_collector.registry)

        logger.debug("Metrics scraped successfully", size_bytes=len(metrics_data))

        return Response(
            content=metrics_data,
            media_type=CONTENT_TYPE_LATEST,
        )

    except Exception as e:
        logger.error(
            "Failed to generate metrics",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )

        error_metrics = f"""# HELP service_common_metrics_error Metrics generation errors
# TYPE service_common_metrics_error counter
service_common_metrics_error{{error="{type(e).__name__}"}} 1
"""
        return Response(
            content=error_metrics,
            media_type=CONTENT_TYPE_LATEST,
        )
