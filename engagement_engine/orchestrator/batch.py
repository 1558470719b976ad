"""
Batch Orchestrator: full-corpus recomputation of tiers and the voice profile.

One run reads the whole corpus in fixed-size pages, derives per-post
metrics page by page, then (only if every page succeeded) re-percentiles
the complete snapshot and learns the new voice profile. Only once both
are computed does it write: the profile first, then the derived metrics.
Nothing is written after a failed page, and a failed write is reported
rather than raised, so a partial pass can never leave a new profile next
to old tiers.

Every artifact is recomputed from the snapshot read at the start of the
run, so re-running on an unchanged corpus writes identical tiers and an
identical profile signature.

With an ``embedder`` the post texts of each page are also embedded into
the post-embedding store as the page is read, under the same page delay.

Flow::

    posts pages ──> derive_metrics ─┬─> embed page (optional)
    comment pages ──────────────────┼─> (all pages ok?) ─> assign_tiers + learn
                                    │                      save profile
                                    │                      upsert metrics
                                    │                      sweep cache, warm topics
                                    └─> (page failed) ──> report, no commit
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, Union

from engagement_engine.analysis.post_metrics import assign_tiers, derive_metrics, tier_counts
from engagement_engine.config import BatchConfig
from engagement_engine.corpus import DEFAULT_PROFILE_KEY
from engagement_engine.exceptions import CorpusUnavailableError
from engagement_engine.logging import ComponentLogger, LogComponent
from engagement_engine.models import BatchPageError, BatchReport, Comment, HistoricalPost
from engagement_engine.utils import utc_now
from engagement_engine.voice.learner import VoicePatternLearner

# Paging over a source that keeps failing stops after this many failed pages in a row.
MAX_CONSECUTIVE_PAGE_ERRORS = 3

Record = Union[HistoricalPost, Comment]


class BatchOrchestrator:
    """
    Sequences metric derivation, tiering and voice learning over a corpus.

    Args:
        source: Corpus source with ``fetch_posts_page(offset, limit)`` and
            ``fetch_comments_page(offset, limit)`` coroutines. Pages may
            contain model instances or raw record dicts.
        sink: Corpus sink with ``upsert_derived_metrics(posts)`` and
            ``save_voice_profile(profile, profile_key)``. Defaults to
            ``source`` (``SupabaseDB`` and ``InMemoryCorpus`` are both).
        learner: Voice learner; a default ``VoicePatternLearner`` if omitted.
        cache: Optional ``ResearchCache`` swept after a committed run.
        analyzer: Optional ``HistoricalAnalyzer`` used to warm
            ``config.warm_topics`` after a committed run.
        embedder: Optional ``EmbeddingSimilarity`` with a store; each posts
            page is passed to its ``embed_posts``. After the first failure
            embedding is skipped for the rest of the run.
        config: Paging settings.
        profile_key: Key under which the voice profile is stored.

    Usage::

        orchestrator = BatchOrchestrator(source=db, cache=cache)
        report = await orchestrator.run_full_analysis()
        if not report.committed:
            for err in report.errors:
                print(err.kind, err.offset, err.error)
    """

    def __init__(
        self,
        source: Any,
        sink: Any = None,
        learner: Optional[VoicePatternLearner] = None,
        cache: Any = None,
        analyzer: Any = None,
        embedder: Any = None,
        config: Optional[BatchConfig] = None,
        profile_key: str = DEFAULT_PROFILE_KEY,
    ):
        self.source = source
        self.sink = sink if sink is not None else source
        self.learner = learner or VoicePatternLearner()
        self.cache = cache
        self.analyzer = analyzer
        self.embedder = embedder
        self._embedding = False
        self.config = config or BatchConfig()
        self.profile_key = profile_key
        self.log = ComponentLogger(LogComponent.BATCH_ORCHESTRATOR)

    async def run_full_analysis(self) -> BatchReport:
        """
        Run one full pass over the corpus.

        Returns:
            ``BatchReport``. ``committed`` is ``True`` only when every page
            succeeded and the tiers and profile were written. Failed
            commit steps are in ``errors`` like failed pages.

        Raises:
            CorpusUnavailableError: The first posts page could not be read;
                nothing was processed.
        """
        report = BatchReport(started_at=utc_now())
        self._embedding = self.embedder is not None
        async with self.log.timed("Full corpus analysis"):
            posts = await self._collect("posts", self.source.fetch_posts_page, HistoricalPost, report)
            comments = await self._collect(
                "comments", self.source.fetch_comments_page, Comment, report
            )
            report.processed = len(posts) + len(comments)

            if report.errors:
                await self.log.warning(
                    f"{len(report.errors)} page(s) failed; keeping previous tiers and profile",
                    data={"errors": [e.to_dict() for e in report.errors]},
                )
            else:
                await self._commit(list(posts.values()), comments, report)

        report.finished_at = utc_now()
        return report

    # -------------------------------------------------------------------------
    # Paging
    # -------------------------------------------------------------------------

    async def _collect(
        self,
        kind: str,
        fetch: Callable[[int, int], Awaitable[List[Any]]],
        model: Type[Record],
        report: BatchReport,
    ) -> Any:
        """Read every page of one record kind.

        Posts are returned as a dict keyed by id (a post appended between
        page reads can shift an older one onto the next page), comments as
        a list.
        """
        page_size = self.config.page_size
        collected: Dict[str, Record] = {}
        page = 0
        consecutive_errors = 0

        while True:
            offset = page * page_size
            if page > 0 and self.config.page_delay_seconds > 0:
                await asyncio.sleep(self.config.page_delay_seconds)
            try:
                rows = await fetch(offset, page_size)
            except Exception as e:
                if kind == "posts" and page == 0:
                    if isinstance(e, CorpusUnavailableError):
                        raise
                    raise CorpusUnavailableError(f"Corpus source unreachable: {e}") from e
                report.errors.append(BatchPageError(kind=kind, page=page, offset=offset, error=str(e)))
                await self.log.error(f"Failed to read {kind} page {page} (offset {offset})", error=e)
                consecutive_errors += 1
                if consecutive_errors >= MAX_CONSECUTIVE_PAGE_ERRORS:
                    await self.log.error(
                        f"Giving up on {kind} after {consecutive_errors} consecutive page failures"
                    )
                    break
                page += 1
                continue

            consecutive_errors = 0
            page_records: List[Record] = []
            for row in rows:
                record = self._coerce(row, model)
                if record is None:
                    report.skipped += 1
                    continue
                if isinstance(record, HistoricalPost):
                    record = derive_metrics(record)
                collected[record.id] = record
                page_records.append(record)

            await self.log.debug(f"Read {kind} page {page}: {len(rows)} rows")
            if model is HistoricalPost and self._embedding and page_records:
                await self._embed_page(page_records, page, report)
            if len(rows) < page_size:
                break
            page += 1

        if model is Comment:
            return list(collected.values())
        return collected

    async def _embed_page(self, posts: List[Record], page: int, report: BatchReport) -> None:
        try:
            report.embedded_posts += await self.embedder.embed_posts(posts)
        except Exception as e:
            self._embedding = False
            await self.log.warning(
                f"Embedding posts page {page} failed; skipping embeddings for this run",
                data={"error": str(e)},
            )

    @staticmethod
    def _coerce(row: Any, model: Type[Record]) -> Optional[Record]:
        """Model instance for ``row``, or ``None`` when it must be skipped."""
        if isinstance(row, model):
            record = row
        else:
            try:
                record = model.from_dict(row)
            except (ValueError, TypeError, KeyError, AttributeError):
                return None
        if not (record.text or "").strip():
            return None
        return record

    # -------------------------------------------------------------------------
    # Commit
    # -------------------------------------------------------------------------

    async def _commit(
        self,
        posts: List[HistoricalPost],
        comments: List[Comment],
        report: BatchReport,
    ) -> None:
        """Compute everything, then write the profile followed by the tiers.

        A failed profile write leaves the store untouched. A failed tier
        upsert puts the previous profile back, so readers never see a new
        profile next to old tiers. Either way ``committed`` stays ``False``
        and the failure is in ``report.errors``.
        """
        try:
            tiered = assign_tiers(posts)
            profile = await self.learner.learn([*tiered, *comments])
        except Exception as e:
            await self._commit_failed("learn", e, report)
            return

        previous = await self._previous_profile()
        try:
            await self.sink.save_voice_profile(profile, self.profile_key)
        except Exception as e:
            await self._commit_failed("profile", e, report)
            return

        try:
            await self.sink.upsert_derived_metrics(tiered)
        except Exception as e:
            await self._commit_failed("metrics", e, report)
            if previous is not None:
                try:
                    await self.sink.save_voice_profile(previous, self.profile_key)
                except Exception as restore_error:
                    await self._commit_failed("restore", restore_error, report)
            return

        report.committed = True
        report.profile_sample_count = profile.sample_count
        report.tier_counts = tier_counts(tiered)
        await self.log.info(
            f"Committed {len(tiered)} tiered posts and a profile of {profile.sample_count} samples",
            data={"tierCounts": report.tier_counts, "skipped": report.skipped},
        )

        if self.cache is not None:
            try:
                report.swept_cache_entries = await self.cache.sweep()
            except Exception as e:
                await self.log.warning("Cache sweep failed", data={"error": str(e)})
        if self.analyzer is not None:
            await self._warm(tiered, report)

    async def _previous_profile(self) -> Any:
        load = getattr(self.sink, "load_voice_profile", None)
        if load is None:
            return None
        try:
            return await load(self.profile_key)
        except Exception as e:
            await self.log.warning(
                "Could not read the current voice profile; a failed commit cannot restore it",
                data={"error": str(e)},
            )
            return None

    async def _commit_failed(self, step: str, error: Exception, report: BatchReport) -> None:
        report.errors.append(BatchPageError(kind=step, page=-1, offset=-1, error=str(error)))
        await self.log.error(f"Commit step '{step}' failed; run not committed", error=error)

    async def _warm(self, posts: List[HistoricalPost], report: BatchReport) -> None:
        """Pre-compute analyses for configured topics against the new tiers."""
        for topic in self.config.warm_topics:
            try:
                result = await self.analyzer.analyze(topic, posts, force_refresh=True)
            except Exception as e:
                await self.log.warning(f"Cache warm-up failed for '{topic}'", data={"error": str(e)})
                continue
            if result.degraded:
                await self.log.warning(
                    f"Cache warm-up for '{topic}' degraded; result not cached",
                    data={"warnings": result.warnings},
                )
                continue
            report.warmed_topics.append(topic)


__all__ = ["BatchOrchestrator", "MAX_CONSECUTIVE_PAGE_ERRORS"]
