"""
Requeue a single resume for processing
"""
import asyncio
import sys

import structlog

from resume_pipeline.core.exceptions import ResumePipelineError
from resume_pipeline.core.logging_config import configure_logging
from resume_pipeline.services import Services

logger = structlog.get_logger()


async def reprocess_resume(document_id: int, owner_id: str, priority: int = 1) -> int:
    """Put the resume back on the queue ahead of regular uploads"""
    services = Services.from_settings()
    try:
        await services.startup()
        item = await services.processor.requeue(owner_id, document_id, priority=priority)
    finally:
        await services.shutdown()

    print(f"\n{'=' * 80}")
    print("RESUME REQUEUED")
    print(f"{'=' * 80}\n")
    print(f"Document ID: {document_id}")
    print(f"Owner: {owner_id}")
    print(f"Queue item: {item.id} (priority {item.priority}, attempt {item.retry_count + 1})")
    print("\nThe queue worker will pick it up on its next tick.\n")
    return item.id


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print("Usage: python scripts/reprocess_single_resume.py <document_id> <owner_id>")
        print("Example: python scripts/reprocess_single_resume.py 33 user-42")
        sys.exit(1)

    configure_logging()
    try:
        asyncio.run(reprocess_resume(int(sys.argv[1]), sys.argv[2]))
    except ResumePipelineError as e:
        logger.error("reprocess_failed", document_id=sys.argv[1], error=e.message)
        print(f"❌ Error: {e.message}")
        sys.exit(1)
