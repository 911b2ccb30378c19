"""Research Agent - topic research from the command line.

Queues one job per topic and prints each result once the queue drains.
"""

import argparse
import asyncio
import sys

from research_agent.errors import ResearchAgentError
from research_agent.models.jobs import JobStatus, Priority
from research_agent.services.job_queue import Scheduler
from research_agent.services.pipeline import ResearchPipeline
from research_agent.services.result_store import InMemoryResultStore
from research_agent.tools.search_provider import build_default_providers


async def run_research(topics: list[str], priority: str, workers: int) -> int:
    """Run research for every topic and print the results."""
    store = InMemoryResultStore()
    pipeline = ResearchPipeline(build_default_providers(), store)
    scheduler = Scheduler(pipeline, store, concurrency=workers)

    jobs = []
    for topic in topics:
        try:
            jobs.append(scheduler.submit(topic, priority))
        except ResearchAgentError as e:
            print(f"[!] Rejected {topic!r}: {e.message}")

    scheduler.start()
    try:
        await scheduler.wait_idle()
    finally:
        await scheduler.stop()

    failures = 0
    for job in jobs:
        print(f"\n{'=' * 50}")
        print(f"Topic: {job.topic}  [{job.priority.value}]")
        print(f"{'=' * 50}")
        if job.status == JobStatus.FAILED:
            failures += 1
            print(f"[!] Failed: {job.error}")
            continue

        result = await store.get_result(job.id)
        if result is None:
            continue
        print(f"Articles: {result.total_articles}  Confidence: {result.confidence:.2f}")
        print(f"Processing time: {result.processing_time}ms")
        print(f"\nSummary:\n{result.summary}")
        print("\nKey insights:")
        for insight in result.key_insights:
            print(f"  - {insight}")
        if result.keywords:
            print(f"\nKeywords: {', '.join(result.keywords)}")
        for i, article in enumerate(result.articles[:5], 1):
            print(f"  {i}. [{article.relevance_score:g}] {article.title} ({article.source})")
            print(f"     {article.url}")

    return 1 if failures else 0


def main():
    parser = argparse.ArgumentParser(description="Research Agent")
    parser.add_argument("topics", nargs="+", help="Research topic(s)")
    parser.add_argument(
        "--priority",
        "-p",
        choices=[p.value for p in Priority],
        default=Priority.NORMAL.value,
        help="Priority for every submitted topic",
    )
    parser.add_argument("--workers", "-w", type=int, default=1, help="Concurrent workers")

    args = parser.parse_args()

    sys.exit(asyncio.run(run_research(args.topics, args.priority, args.workers)))


if __name__ == "__main__":
    main()
