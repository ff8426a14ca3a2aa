"""
Multi-stage research search.

Visual-first workflow:
1. visual: reverse-image search on the item photo (when one is given)
2. text: web searches from caller queries, topped up with queries built from
   titles the visual stage found
3. merge: dedupe by URL (first occurrence wins, visual before text), rank
4. verify: optional pairwise image comparison of the top thumbnails

Stages run one after another. A failing stage contributes no results and an
`errors` entry; whatever its siblings found is still returned.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from config import ResearchSettings
from research.executors import run_stage_with_status
from research.matching import DomainMatcher
from research.metrics import RunMetricsCollector
from research.models import (
    ExtractedTitle,
    KnowledgeGraph,
    MatchedResult,
    MultiStageSearchOptions,
    MultiStageSearchResponse,
    Seller,
    VisualMatchResult,
    VisualVerificationSummary,
)
from research.providers.base import TextSearchProvider, VisualSearchProvider, search_multiple
from research.queries import DEFAULT_KEYWORD, generate_queries_from_titles
from research.utils.url import dedup_key
from research.visual import (
    CONFIRMED_THRESHOLD,
    LIKELY_THRESHOLD,
    VisualVerifier,
    is_confirmed_match,
    is_likely_match,
)
from services.dealers import DealerDirectory

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 10
MAX_EXTRACTED_TITLES = 5
GENERIC_TITLE_MARKERS = ("ebay", "etsy", "search results")


@dataclass
class VisualStageOutput:
    """What the visual stage hands to the text stage and the merge."""
    results: List[MatchedResult] = field(default_factory=list)
    knowledge_graph: Optional[KnowledgeGraph] = None
    extracted_titles: List[ExtractedTitle] = field(default_factory=list)
    credits_used: int = 0
    error: Optional[str] = None


@dataclass
class TextStageInput:
    queries: List[str]
    max_results_per_query: int
    max_results: int

    @classmethod
    def build(
        cls,
        options: MultiStageSearchOptions,
        visual: Optional[VisualStageOutput],
        keyword: str = DEFAULT_KEYWORD,
    ) -> "TextStageInput":
        """Caller query and variations first, then title-derived queries up to the limit."""
        candidates: List[str] = []
        if options.query and options.query.strip():
            candidates.append(options.query.strip())
        candidates.extend(q.strip() for q in options.query_variations if q and q.strip())

        unique: List[str] = []
        for query in candidates:
            if query not in unique:
                unique.append(query)

        if visual and visual.extracted_titles and len(unique) < options.max_web_queries:
            for query in generate_queries_from_titles(
                visual.extracted_titles,
                max_queries=options.max_web_queries - len(unique),
                keyword=keyword,
            ):
                if query not in unique:
                    unique.append(query)
        unique = unique[: options.max_web_queries]

        per_query = math.ceil(options.max_web_results / len(unique)) if unique else 0
        return cls(queries=unique, max_results_per_query=per_query, max_results=options.max_web_results)


def extract_titles(results: List[MatchedResult]) -> List[ExtractedTitle]:
    """Titles worth re-searching as text, most trustworthy source first."""
    titles: List[ExtractedTitle] = []
    seen = set()
    for result in results:
        title = (result.title or "").strip()
        if len(title) <= MIN_TITLE_LENGTH:
            continue
        normalized = title.lower()
        if normalized in seen or any(marker in normalized for marker in GENERIC_TITLE_MARKERS):
            continue
        seen.add(normalized)

        confidence = 0.5
        if result.is_known_dealer:
            confidence += 0.2
            if result.reliability_tier and result.reliability_tier <= 2:
                confidence += 0.2

        titles.append(
            ExtractedTitle(
                title=title,
                source=result.dealer_name or result.domain,
                confidence=round(confidence, 2),
            )
        )

    titles.sort(key=lambda t: t.confidence, reverse=True)
    return titles[:MAX_EXTRACTED_TITLES]


def merge_results(*groups: List[MatchedResult]) -> List[MatchedResult]:
    """Union deduped by URL key; the first occurrence wins."""
    seen: Dict[str, MatchedResult] = {}
    for group in groups:
        for result in group:
            key = dedup_key(result.url)
            if key and key not in seen:
                seen[key] = result
    return list(seen.values())


def _rank_key(result: MatchedResult) -> tuple:
    verified_score = result.visual_match or 0
    confirmed = result.visually_verified and (bool(result.same_image) or verified_score >= CONFIRMED_THRESHOLD)
    return (
        not confirmed,
        -verified_score if result.visually_verified and verified_score >= LIKELY_THRESHOLD else 0,
        not result.is_known_dealer,
        result.reliability_tier or 99,
        result.price_value is None,
        result.source != "lens",
    )


def rank_results(results: List[MatchedResult]) -> List[MatchedResult]:
    """Stable ranking: confirmed visual matches, known dealers, tier, priced, lens before web."""
    return sorted(results, key=_rank_key)


def apply_verification(
    results: List[MatchedResult],
    verifications: Dict[str, VisualMatchResult],
) -> List[MatchedResult]:
    annotated = []
    for result in results:
        verification = verifications.get(result.thumbnail) if result.thumbnail else None
        if verification is None:
            annotated.append(result)
            continue
        annotated.append(
            result.model_copy(
                update={
                    "visually_verified": True,
                    "visual_match": verification.visual_match,
                    "same_image": verification.same_image,
                    "same_artist": verification.same_artist,
                    "visual_explanation": verification.explanation,
                }
            )
        )
    return annotated


class MultiStageSearch:
    """Runs the staged search for one request at a time; holds no per-run state."""

    def __init__(
        self,
        text_provider: TextSearchProvider,
        visual_provider: VisualSearchProvider,
        directory: DealerDirectory,
        verifier: Optional[VisualVerifier] = None,
        settings: Optional[ResearchSettings] = None,
    ):
        self.text_provider = text_provider
        self.visual_provider = visual_provider
        self.directory = directory
        self.verifier = verifier
        self.keyword = settings.search_keyword if settings else DEFAULT_KEYWORD

    async def run(
        self,
        options: MultiStageSearchOptions,
        sellers: Optional[Sequence[Seller]] = None,
    ) -> MultiStageSearchResponse:
        """Run every enabled stage.

        `sellers` is the active directory snapshot to match against; when omitted
        it is read from the directory once, before the first stage.
        """
        started = time.monotonic()
        collector = RunMetricsCollector()
        errors: List[str] = []
        credits = 0

        image_url = (options.image_url or "").strip() or None
        if sellers is None:
            matcher = await DomainMatcher.from_directory(self.directory, options.dealer_ids)
        else:
            matcher = DomainMatcher.from_sellers(sellers, options.dealer_ids)

        with collector.track_run(has_image=bool(image_url)) as run_metrics:
            # Stage 1: visual
            visual: Optional[VisualStageOutput] = None
            if image_url:
                logger.info("[MultiStageSearch] Stage 1: visual search")
                visual, status = await run_stage_with_status(
                    "visual",
                    lambda: self._visual_stage(image_url, options, matcher),
                    count=lambda out: len(out.results),
                )
                if visual is None:
                    errors.append(status.message or "Visual search failed")
                else:
                    credits += visual.credits_used
                    if visual.error:
                        errors.append(f"Visual search: {visual.error}")
                        status = status.model_copy(update={"status": "error", "message": visual.error})
                collector.record_stage(status)

            # Stage 2: text
            web_results: List[MatchedResult] = []
            text_input = TextStageInput.build(options, visual, keyword=self.keyword)
            run_metrics.query_count = len(text_input.queries)
            if options.include_web_search and text_input.queries:
                if not self.text_provider.is_configured():
                    errors.append(self.text_provider.not_configured_response().error)
                else:
                    logger.info(f"[MultiStageSearch] Stage 2: {len(text_input.queries)} web searches")
                    web, status = await run_stage_with_status(
                        "text",
                        lambda: self._text_stage(text_input, matcher),
                        count=lambda out: len(out[0]),
                    )
                    if web is None:
                        errors.append(status.message or "Web search failed")
                    else:
                        web_results, text_credits, text_errors = web
                        credits += text_credits
                        errors.extend(text_errors)
                    collector.record_stage(status)

            # Stage 3: merge
            lens_results = visual.results if visual else []
            results = rank_results(merge_results(lens_results, web_results))
            collector.record_results(
                raw=len(lens_results) + len(web_results),
                merged=len(results),
                known=sum(1 for r in results if r.is_known_dealer),
            )

            # Stage 4: verify
            summary: Optional[VisualVerificationSummary] = None
            if options.enable_visual_verification and image_url:
                results, summary = await self._verify_stage(image_url, results, options, errors, collector)
                collector.record_verification(summary.verified_count, summary.filtered_count)

            collector.record_credits(credits)

        configured = self._any_configured(image_url, options, text_input)
        response = MultiStageSearchResponse(
            success=configured,
            configured=configured,
            image_url=image_url,
            results=results,
            lens_results=lens_results,
            web_results=web_results,
            knowledge_graph=visual.knowledge_graph if visual else None,
            extracted_titles=visual.extracted_titles if visual else [],
            unknown_domains=matcher.unknown_domains,
            credits_used=credits,
            errors=errors,
            search_time=round(time.monotonic() - started, 3),
            total_results=len(results),
            visual_verification=summary,
        )
        logger.info(
            f"[MultiStageSearch] Complete: {response.total_results} results "
            f"({len(lens_results)} lens, {len(web_results)} web), "
            f"{len(response.unknown_domains)} unknown domains, {credits} credits, {len(errors)} errors"
        )
        return response

    def _any_configured(
        self,
        image_url: Optional[str],
        options: MultiStageSearchOptions,
        text_input: TextStageInput,
    ) -> bool:
        participating = []
        if image_url:
            participating.append(self.visual_provider)
        if options.include_web_search and text_input.queries:
            participating.append(self.text_provider)
        if not participating:
            return True
        return any(provider.is_configured() for provider in participating)

    async def _visual_stage(
        self,
        image_url: str,
        options: MultiStageSearchOptions,
        matcher: DomainMatcher,
    ) -> VisualStageOutput:
        if not self.visual_provider.is_configured():
            response = self.visual_provider.not_configured_response()
        else:
            response = await self.visual_provider.search(image_url)

        if response.error:
            logger.warning(f"[MultiStageSearch] Visual search error: {response.error}")
            return VisualStageOutput(credits_used=response.credits_used, error=response.error)

        matched = matcher.match_all(response.results[: options.max_lens_results])
        titles = extract_titles(matched)
        logger.info(
            f"[MultiStageSearch] Visual found {len(matched)} matches "
            f"({sum(1 for r in matched if r.is_known_dealer)} known dealers), {len(titles)} titles"
        )
        return VisualStageOutput(
            results=matched,
            knowledge_graph=response.knowledge_graph,
            extracted_titles=titles,
            credits_used=response.credits_used,
        )

    async def _text_stage(self, text_input: TextStageInput, matcher: DomainMatcher) -> tuple:
        response = await search_multiple(
            self.text_provider,
            text_input.queries,
            max_results_per_query=text_input.max_results_per_query,
        )
        matched = matcher.match_all(response.results[: text_input.max_results])
        return matched, response.total_credits_used, response.errors

    async def _verify_stage(
        self,
        image_url: str,
        results: List[MatchedResult],
        options: MultiStageSearchOptions,
        errors: List[str],
        collector: RunMetricsCollector,
    ) -> tuple:
        summary = VisualVerificationSummary(performed=False)
        if self.verifier is None or not self.verifier.is_configured():
            errors.append("Visual verification is not configured. Add an LLM API key to environment variables.")
            return results, summary

        thumbnails = [r.thumbnail for r in results if r.thumbnail][: options.max_visual_verifications]
        if not thumbnails:
            logger.info("[MultiStageSearch] No thumbnails available for visual verification")
            return results, summary

        verifications, status = await run_stage_with_status(
            "verify",
            lambda: self.verifier.batch_compare(
                image_url,
                thumbnails,
                concurrency=options.verification_concurrency,
                max_candidates=options.max_visual_verifications,
            ),
        )
        collector.record_stage(status)
        if verifications is None:
            errors.append(status.message or "Visual verification failed")
            return results, summary

        annotated = rank_results(apply_verification(results, verifications))
        kept = annotated
        if options.visual_verification_threshold > 0:
            kept = [
                r
                for r in annotated
                if not r.visually_verified or (r.visual_match or 0) >= options.visual_verification_threshold
            ]

        verified = [r for r in kept if r.visually_verified]
        outcomes = list(verifications.values())
        summary = VisualVerificationSummary(
            performed=True,
            verified_count=len(outcomes),
            confirmed_count=sum(1 for v in outcomes if is_confirmed_match(v)),
            likely_count=sum(1 for v in outcomes if is_likely_match(v) and not is_confirmed_match(v)),
            filtered_count=len(annotated) - len(kept),
        )
        logger.info(
            f"[MultiStageSearch] Verified {summary.verified_count} thumbnails: "
            f"{summary.confirmed_count} confirmed, {summary.likely_count} likely, "
            f"{summary.filtered_count} filtered, {len(verified)} verified results kept"
        )
        return kept, summary
