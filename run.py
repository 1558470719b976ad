"""
Command-line entry point for the scoring & analysis engine.

Usage::

    # Score one research bundle (JSON file) against the ICP:
    python run.py score data/bundle.json

    # Rank historical precedents for a topic:
    python run.py analyze "hiring your first VP of sales" --corpus data/posts.json
    python run.py analyze "board meetings" --supabase --embeddings --limit 3

    # Learn a voice profile and optionally score a draft against it:
    python run.py learn --corpus data/posts.json --draft "I made a mistake last year..."

    # Full batch pass (re-tier posts, regenerate and store the voice profile):
    python run.py batch --supabase --embeddings
    python run.py batch --corpus data/posts.json

    # Delete expired research-cache rows:
    python run.py sweep-cache

Results are printed as JSON on stdout; logs go to stderr and ``logs/``.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, Optional

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("run")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Performance-driven ICP scoring and content analysis"
    )
    parser.add_argument(
        "--config",
        metavar="FILE",
        help="Settings YAML (default: config/settings.yaml)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    score = sub.add_parser("score", help="Score a research bundle against the ICP")
    score.add_argument("bundle", help="JSON file with the research bundle")

    analyze = sub.add_parser("analyze", help="Rank historical precedents for a topic")
    analyze.add_argument("topic", help="Topic of the planned post")
    analyze.add_argument("--limit", type=int, default=5, help="Max matches (default: 5)")
    analyze.add_argument("--force-refresh", action="store_true", help="Ignore cached results")

    learn = sub.add_parser("learn", help="Learn a voice profile from the corpus")
    learn.add_argument("--draft", help="Draft text to score against the learned profile")
    learn.add_argument(
        "--tone",
        action="store_true",
        help="Classify tone with Claude (needs ANTHROPIC_API_KEY)",
    )

    batch = sub.add_parser("batch", help="Re-tier the corpus and regenerate the voice profile")
    sub.add_parser("sweep-cache", help="Delete expired research-cache entries")

    for command in (analyze, learn, batch):
        source = command.add_mutually_exclusive_group(required=True)
        source.add_argument("--corpus", metavar="FILE", help="Corpus JSON file")
        source.add_argument("--supabase", action="store_true", help="Read the corpus from Supabase")
    for command in (analyze, batch):
        command.add_argument(
            "--embeddings",
            action="store_true",
            help="Use the embeddings API for similarity (falls back to keyword overlap)",
        )

    return parser


def _emit(payload: Dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


async def _load_corpus(args: argparse.Namespace, db: Any) -> Any:
    """Source for the corpus: Supabase or a JSON file."""
    if getattr(args, "supabase", False):
        return db
    from engagement_engine.corpus import InMemoryCorpus

    return InMemoryCorpus.from_json_file(args.corpus)


async def _snapshot(source: Any, page_size: int) -> Any:
    """Read every post and comment from a paged source."""
    from engagement_engine.analysis.post_metrics import derive_metrics
    from engagement_engine.models import Comment, HistoricalPost

    async def read_all(fetch: Any, model: Any) -> list:
        items, offset = [], 0
        while True:
            rows = await fetch(offset, page_size)
            for row in rows:
                try:
                    items.append(row if isinstance(row, model) else model.from_dict(row))
                except ValueError as exc:
                    logger.warning("Skipping malformed record: %s", exc)
            if len(rows) < page_size:
                return items
            offset += page_size

    posts = [derive_metrics(p) if p.derived_metrics is None else p
             for p in await read_all(source.fetch_posts_page, HistoricalPost)]
    comments = await read_all(source.fetch_comments_page, Comment)
    return posts, comments


def _build_similarity(args: argparse.Namespace, settings: Any, db: Any) -> Any:
    """Embedding provider (or ``None``) and the resilient wrapper around it.

    With ``--supabase`` post embeddings are read from and written to the
    ``post_embeddings`` table.
    """
    from engagement_engine.analysis import EmbeddingSimilarity, ResilientSimilarity

    provider = None
    if args.embeddings:
        from engagement_engine.tools import EmbeddingClient

        provider = EmbeddingSimilarity(
            EmbeddingClient(api_url=settings.embedding_api_url, model=settings.embedding_model),
            store=db,
        )
    similarity = ResilientSimilarity(
        provider,
        timeout_seconds=settings.analyzer.provider_timeout_seconds,
        max_attempts=settings.analyzer.provider_max_attempts,
        base_delay=settings.analyzer.provider_base_delay,
    )
    return provider, similarity


async def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)

    from pathlib import Path

    from engagement_engine.cache import InMemoryCacheStore, ResearchCache
    from engagement_engine.config import Settings, validate_env
    from engagement_engine.logging import ComponentLogger, LogComponent, init_logger

    settings = Settings.from_yaml(Path(args.config) if args.config else None)
    logging.getLogger().setLevel(settings.log_level.upper())

    needs_db = getattr(args, "supabase", False) or args.command == "sweep-cache"
    db = None
    if needs_db:
        from engagement_engine.database import get_db

        validate_env(strict=True)
        db = await get_db()
        logger.info("Database connected")

    engine_log = init_logger(log_dir=settings.log_dir, db=db)
    cli_log = ComponentLogger(LogComponent.CLI)
    cache = ResearchCache(
        store=db if db is not None else InMemoryCacheStore(),
        ttl_hours=settings.cache.ttl_hours,
        source_ttl_hours=settings.cache.source_ttl_hours,
    )

    try:
        if args.command == "score":
            from engagement_engine.models import ResearchBundle
            from engagement_engine.scoring import ICPScoringEngine

            with open(args.bundle, "r", encoding="utf-8") as f:
                bundle = ResearchBundle.from_dict(json.load(f))
            result = ICPScoringEngine.from_settings(settings).score(bundle)
            await cli_log.info(
                f"Scored '{bundle.profile.name}': {result.total_score} ({result.recommendation.value})"
            )
            _emit(result.to_dict())

        elif args.command == "analyze":
            from engagement_engine.analysis import HistoricalAnalyzer

            _, similarity = _build_similarity(args, settings, db)
            analyzer = HistoricalAnalyzer(similarity, cache, settings.analyzer)
            posts, _ = await _snapshot(await _load_corpus(args, db), settings.batch.page_size)
            result = await analyzer.analyze(
                args.topic, posts, limit=args.limit, force_refresh=args.force_refresh
            )
            _emit(result.to_dict())

        elif args.command == "learn":
            from engagement_engine.voice import VoicePatternLearner

            classifier = None
            if args.tone:
                from engagement_engine.tools import ClaudeClient, ClaudeToneClassifier

                classifier = ClaudeToneClassifier(ClaudeClient(model=settings.llm_model))
            learner = VoicePatternLearner(settings.voice, classifier=classifier)
            posts, comments = await _snapshot(await _load_corpus(args, db), settings.batch.page_size)
            profile = await learner.learn([*posts, *comments])
            payload: Dict[str, Any] = {"profile": profile.to_dict()}
            if args.draft:
                payload["draftScore"] = learner.score(args.draft, profile).to_dict()
            _emit(payload)

        elif args.command == "batch":
            from engagement_engine.analysis import HistoricalAnalyzer
            from engagement_engine.orchestrator import BatchOrchestrator
            from engagement_engine.voice import VoicePatternLearner

            embedder, similarity = _build_similarity(args, settings, db)
            orchestrator = BatchOrchestrator(
                source=await _load_corpus(args, db),
                learner=VoicePatternLearner(settings.voice),
                cache=cache,
                analyzer=HistoricalAnalyzer(similarity, cache, settings.analyzer),
                embedder=embedder if db is not None else None,
                config=settings.batch,
            )
            report = await orchestrator.run_full_analysis()
            _emit(report.to_dict())
            if not report.committed:
                return 1

        elif args.command == "sweep-cache":
            deleted = await cache.sweep()
            await cli_log.info(f"Swept {deleted} expired cache entries")
            _emit({"deleted": deleted})

    finally:
        await engine_log.flush()

    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(0)
