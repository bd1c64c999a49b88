"""Celery tasks wrapping the transform orchestrator."""

import logging
from typing import Any, Dict, List

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(name="teampulse.tasks.transform_tasks.transform_all_sources", bind=True)
def transform_all_sources(self) -> List[Dict[str, Any]]:
    """
    Run every source transformer in order.

    Failures are reported per source in the returned list; the task itself
    only fails if the orchestrator cannot be built.

    Returns:
        List of RunResult dicts, one per source
    """
    from teampulse.transformers.runner import transform_all

    logger.info(f"Starting scheduled transform run (task {self.request.id})")
    results = [r.to_dict() for r in transform_all()]
    failed = [r["source"] for r in results if not r["success"]]
    if failed:
        logger.warning(f"Transform run finished with failed sources: {', '.join(failed)}")
    return results


@shared_task(name="teampulse.tasks.transform_tasks.transform_source", bind=True)
def transform_source(self, source: str) -> Dict[str, Any]:
    """
    Run a single source transformer.

    Args:
        source: One of email, slack, jira, github

    Returns:
        RunResult dict
    """
    from teampulse.transformers.runner import transform_by_source

    logger.info(f"Starting {source} transform (task {self.request.id})")
    return transform_by_source(source).to_dict()
