"""Visual verification: does a candidate thumbnail show the same physical item?"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Sequence

from observability.metrics import visual_verifications_total
from research.models import MatchTier, VisualMatchResult
from research.utils.url import same_resource
from services.llm import GenerativeModel
from utils.json_utils import parse_model_json_object
from utils.security import redact_secrets_from_text

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 5
MAX_CONCURRENCY = 10
MAX_BATCH_CANDIDATES = 20

CONFIRMED_THRESHOLD = 85
LIKELY_THRESHOLD = 60
SAME_CREATOR_THRESHOLD = 40
POSSIBLY_RELATED_THRESHOLD = 20

COMPARE_PROMPT = """Compare these two images. The first is an item we're researching. The second is a search result.

Determine:
1. Are these the SAME item (same artwork, possibly different scan/photo/condition)?
2. Or are they DIFFERENT artworks (perhaps by the same artist, similar style, but different images)?

Return ONLY a JSON object (no markdown, no explanation outside JSON):
{
  "visualMatch": <0-100 similarity score>,
  "sameImage": <true if definitely the same item, false otherwise>,
  "sameArtist": <true if appears to be same artist/style but different work>,
  "explanation": "<brief reason, max 50 words>"
}

Scoring guide:
- 90-100: Definitely the same item (identical artwork)
- 70-89: Very likely the same item (minor differences in photo/scan)
- 50-69: Possibly the same, needs human review
- 30-49: Same artist/style, different work
- 0-29: Different/unrelated images"""

_LABELS = {
    MatchTier.CONFIRMED: "Same item confirmed",
    MatchTier.LIKELY: "Likely same item",
    MatchTier.SAME_CREATOR_DIFFERENT_WORK: "Same artist, different work",
    MatchTier.POSSIBLY_RELATED: "Possibly related",
    MatchTier.UNRELATED: "Different/unrelated",
}


def is_confirmed_match(result: VisualMatchResult) -> bool:
    return result.same_image or result.visual_match >= CONFIRMED_THRESHOLD


def is_likely_match(result: VisualMatchResult) -> bool:
    return result.visual_match >= LIKELY_THRESHOLD


def match_tier(result: VisualMatchResult) -> MatchTier:
    """Presentation tier shared by the UI badges and server-side filtering."""
    if is_confirmed_match(result):
        return MatchTier.CONFIRMED
    if is_likely_match(result):
        return MatchTier.LIKELY
    if result.visual_match >= SAME_CREATOR_THRESHOLD or result.same_artist:
        return MatchTier.SAME_CREATOR_DIFFERENT_WORK
    if result.visual_match >= POSSIBLY_RELATED_THRESHOLD:
        return MatchTier.POSSIBLY_RELATED
    return MatchTier.UNRELATED


def match_label(result: VisualMatchResult) -> str:
    return _LABELS[match_tier(result)]


def failed_comparison(reason: str) -> VisualMatchResult:
    return VisualMatchResult(visual_match=0, same_image=False, same_artist=False, explanation=reason)


class VisualVerifier:
    """Pairwise image comparison through a vision-capable model."""

    def __init__(self, model: GenerativeModel):
        self.model = model

    def is_configured(self) -> bool:
        return self.model.is_configured()

    async def compare(self, reference_url: str, candidate_url: str) -> VisualMatchResult:
        """Score one candidate against the reference image. Never raises."""
        if same_resource(reference_url, candidate_url):
            result = VisualMatchResult(
                visual_match=100,
                same_image=True,
                same_artist=True,
                explanation="Identical image URL",
            )
            visual_verifications_total.labels(tier=match_tier(result).value).inc()
            return result

        try:
            text = await self.model.complete_with_images(COMPARE_PROMPT, [reference_url, candidate_url], max_tokens=500)
            data = parse_model_json_object(text, logger_name="VisualVerifier")
            result = VisualMatchResult(
                visual_match=data.get("visualMatch", data.get("visual_match")),
                same_image=data.get("sameImage", data.get("same_image", False)),
                same_artist=data.get("sameArtist", data.get("same_artist", False)),
                explanation=str(data.get("explanation") or "No explanation provided"),
            )
        except Exception as e:
            reason = redact_secrets_from_text(str(e)) or type(e).__name__
            logger.warning(f"[VisualVerifier] Comparison failed for {candidate_url[:80]}: {reason}")
            result = failed_comparison(reason)

        visual_verifications_total.labels(tier=match_tier(result).value).inc()
        return result

    async def batch_compare(
        self,
        reference_url: str,
        candidate_urls: Sequence[str],
        concurrency: int = DEFAULT_CONCURRENCY,
        max_candidates: int = MAX_BATCH_CANDIDATES,
    ) -> Dict[str, VisualMatchResult]:
        """Compare candidates in fixed windows; each window finishes before the next starts.

        Returns one entry per distinct candidate URL, in input order.
        """
        window = min(max(int(concurrency or DEFAULT_CONCURRENCY), 1), MAX_CONCURRENCY)
        cap = min(max(int(max_candidates), 0), MAX_BATCH_CANDIDATES)

        distinct: List[str] = []
        for url in candidate_urls:
            if url and url not in distinct:
                distinct.append(url)
        distinct = distinct[:cap]

        results: Dict[str, VisualMatchResult] = {}
        for start in range(0, len(distinct), window):
            batch = distinct[start : start + window]
            outcomes = await asyncio.gather(*(self.compare(reference_url, url) for url in batch))
            for url, outcome in zip(batch, outcomes):
                results[url] = outcome

        logger.info(
            f"[VisualVerifier] Compared {len(results)} candidates "
            f"(window={window}, confirmed={sum(1 for r in results.values() if is_confirmed_match(r))})"
        )
        return results
