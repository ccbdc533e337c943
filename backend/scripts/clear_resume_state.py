"""
Clear an owner's cached resume processing state
"""
import asyncio
import sys

import structlog

from resume_pipeline.core.database import transaction
from resume_pipeline.core.logging_config import configure_logging
from resume_pipeline.resumes.state_cache import ResumeStateCache
from resume_pipeline.services import Services

logger = structlog.get_logger()


async def clear_resume_state(owner_id: str) -> str:
    """Drop the snapshot; the next read reports the state from scratch"""
    services = Services.from_settings()
    try:
        await services.startup()
        async with transaction(services.session_factory) as session:
            cache = ResumeStateCache(session)
            await cache.clear_state(owner_id)
            view = await cache.get_state(owner_id)
    finally:
        await services.shutdown()

    logger.info("resume_state_cleared_by_script", owner_id=owner_id)
    print(f"✅ Cleared cached state for {owner_id}")
    print(f"   Current status: {view.processing_needed_status}")
    return view.processing_needed_status


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python scripts/clear_resume_state.py <owner_id>")
        sys.exit(1)

    configure_logging()
    asyncio.run(clear_resume_state(sys.argv[1]))
