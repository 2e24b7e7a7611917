"""
Background job refreshing the funnel gauges.

Publishes per-stage user counts and the number of stages past the
attention threshold to Prometheus, so alerting does not depend on anyone
opening the dashboard.

Schedule: hourly at minute 5 via the arq worker, which serves the gauges
on its own Prometheus port (settings.worker_metrics_port).

Usage:
    arq journey.workers.funnel_gauges.WorkerSettings
"""
import structlog
from arq import cron
from arq.connections import RedisSettings
from prometheus_client import start_http_server

from journey import metrics
from journey.config import settings
from journey.database import get_async_session
from journey.models.journey_stage import all_stages
from journey.services.funnel_service import FunnelService, summarize_funnel

logger = structlog.get_logger(__name__)


async def refresh_funnel_gauges(ctx: dict) -> dict:
    """
    Recompute the funnel and set the gauges.

    Stages without records are reported as 0 users.

    Args:
        ctx: Job context (contains job info)

    Returns:
        Dict with refresh results
    """
    logger.info("funnel_gauges_refresh_started", job_id=ctx.get("job_id"))

    try:
        async with get_async_session() as db:
            stats = await FunnelService(db).fetch_funnel_stats()
    except Exception as e:
        logger.exception("funnel_gauges_refresh_failed", error=str(e))
        return {"status": "failed", "error": str(e)}

    counts = {stat.stage: stat.user_count for stat in stats}
    for stage in all_stages():
        metrics.stage_users_gauge.labels(stage=stage.value).set(counts.get(stage, 0))

    summary = summarize_funnel(stats)
    metrics.stuck_stages_gauge.set(summary.stuck_stage_count)

    logger.info(
        "funnel_gauges_refreshed",
        total_users=summary.total_users,
        stuck_stages=summary.stuck_stage_count,
    )
    return {
        "status": "success",
        "total_users": summary.total_users,
        "stuck_stages": summary.stuck_stage_count,
    }


async def startup(ctx: dict) -> None:
    """Expose this process's gauges to Prometheus."""
    start_http_server(settings.worker_metrics_port)
    logger.info("funnel_gauges_worker_started", metrics_port=settings.worker_metrics_port)


class WorkerSettings:
    """
    arq worker settings for the funnel gauges.

    Schedule:
    - Gauges: every hour at minute 5, and once at worker startup

    Usage:
        arq journey.workers.funnel_gauges.WorkerSettings
    """

    functions = [refresh_funnel_gauges]

    cron_jobs = [
        cron(refresh_funnel_gauges, minute=5, run_at_startup=True, timeout=300),
    ]

    on_startup = startup

    redis_settings = RedisSettings.from_dsn(str(settings.arq_redis_url))


if __name__ == "__main__":
    """
    Run the refresh once.

    Usage:
        python -m journey.workers.funnel_gauges
    """
    import asyncio

    from journey.middleware.logging import setup_logging

    setup_logging()
    result = asyncio.run(refresh_funnel_gauges({"job_id": "manual_run"}))
    logger.info("funnel_gauges_manual_run", **result)
