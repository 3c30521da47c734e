"""
Prefect Workflow - Discount Maintenance

Scheduled upkeep of the discount fact store:
- Provision the fact tables (idempotent)
- Migrate facts that only exist as legacy item metadata
- Backfill capture for fulfilling orders that were never captured

Every step is safe to re-run; an external scheduler may trigger the flow as
often as it likes.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from prefect import flow, get_run_logger, task

from discount_analytics.config import get_settings
from discount_analytics.context import AppContext
from discount_analytics.database.connection import close_database, get_session_factory, init_database

settings = get_settings()


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="provision_fact_store",
    description="Create discount tables if missing",
    retries=3,
    retry_delay_seconds=30,
)
async def provision_fact_store(context: AppContext) -> dict:
    logger = get_run_logger()
    
    provisioned = await context.store.provision()
    version = await context.store.schema_version()
    logger.info(f"Fact store provisioned={provisioned} version={version}")
    
    return {"provisioned": provisioned, "schema_version": version}


@task(
    name="migrate_legacy_facts",
    description="Copy metadata-only discount facts into the fact store",
    retries=1,
    retry_delay_seconds=60,
)
async def migrate_legacy_facts(context: AppContext) -> dict:
    logger = get_run_logger()
    
    summary = await context.migrator.run()
    logger.info(summary.message)
    
    return summary.to_dict()


@task(
    name="backfill_capture",
    description="Capture fulfilling orders missing the captured marker",
    retries=1,
    retry_delay_seconds=60,
)
async def backfill_capture(context: AppContext, lookback_days: Optional[int] = None) -> dict:
    """Capture fulfilling orders; already captured ones are no-ops"""
    logger = get_run_logger()
    
    created_from = None
    if lookback_days:
        created_from = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=lookback_days)
    
    orders = await context.commerce.list_orders(
        context.settings.discounts.fulfilling_statuses,
        created_from=created_from,
    )
    
    captured = 0
    failed = 0
    facts = 0
    for order in orders:
        result = await context.orchestrator.on_order_reached_fulfilling_state(order)
        if result.failed:
            failed += 1
        elif result.captured:
            captured += 1
            facts += len(result.facts)
    
    logger.info(f"Backfill checked {len(orders)} orders, captured {captured}, failed {failed}")
    return {
        "orders_checked": len(orders),
        "orders_captured": captured,
        "orders_failed": failed,
        "facts_captured": facts,
    }


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="discount_maintenance",
    description="Provision, migrate and backfill discount facts",
    retries=1,
    retry_delay_seconds=300,
)
async def discount_maintenance(
    migrate: bool = True,
    backfill: bool = True,
    lookback_days: Optional[int] = 30,
) -> dict:
    """
    Steps:
    1. Provision the fact store
    2. Migrate legacy metadata facts
    3. Backfill uncaptured fulfilling orders
    """
    logger = get_run_logger()
    results = {"started_at": datetime.now(timezone.utc).isoformat(), "steps": {}}
    
    await init_database()
    try:
        context = AppContext.build(get_session_factory(), settings)
        
        results["steps"]["provision"] = await provision_fact_store(context)
        if not results["steps"]["provision"]["provisioned"]:
            logger.error("Fact store could not be provisioned, skipping migration")
            results["status"] = "failed"
            return results
        
        if migrate:
            results["steps"]["migrate"] = await migrate_legacy_facts(context)
        if backfill:
            results["steps"]["backfill"] = await backfill_capture(context, lookback_days)
        
        errors = results["steps"].get("migrate", {}).get("errors", 0)
        errors += results["steps"].get("backfill", {}).get("orders_failed", 0)
        results["status"] = "completed_with_errors" if errors else "completed"
    finally:
        await close_database()
    
    logger.info(f"Discount maintenance finished: {results['status']}")
    return results


if __name__ == "__main__":
    import asyncio
    
    asyncio.run(discount_maintenance())
