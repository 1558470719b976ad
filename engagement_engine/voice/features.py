"""
Lexical and structural features of a single text.

``extract_features`` is shared by ``VoicePatternLearner.learn`` (aggregated
over a corpus) and ``VoicePatternLearner.score`` (compared against a
profile), so both sides always measure the same things.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List

from engagement_engine.analysis.post_metrics import (
    CTA_PATTERN,
    STORY_PATTERN,
    classify_opening,
    classify_structure,
)
from engagement_engine.analysis.similarity import content_terms

EMOJI_PATTERN = re.compile(
    "[\U0001F600-\U0001F64F\U0001F300-\U0001F5FF\U0001F680-\U0001F6FF"
    "\U0001F1E0-\U0001F1FF\U0001F900-\U0001F9FF\u2600-\u27BF]"
)
HASHTAG_PATTERN = re.compile(r"#\w+")
LIST_LINE_PATTERN = re.compile(r"(?m)^\s*(?:\d+[.)]|[-•*→✅])\s+")
SENTENCE_PATTERN = re.compile(r"[^.!?\n]+[.!?]*")
PARAGRAPH_SPLIT = re.compile(r"\n+")

DISCLOSURE_PATTERN = re.compile(
    r"\b(i struggled|i failed|i was wrong|i admit|honestly|my mistake|i felt|"
    r"i was scared|i was afraid|vulnerable|i doubted|struggle|struggled|"
    r"i learned the hard way|confession)\b",
    re.IGNORECASE,
)
AUTHORITY_PATTERN = re.compile(
    r"(\b\d+\+?\s*(?:years|clients|companies|leaders|ceos|founders|teams|executives)\b"
    r"|\d+%|\bresearch shows\b|\bdata shows\b|\bstudies show\b"
    r"|\bi've (?:coached|advised|worked with|led|built)\b|\bin my experience\b)",
    re.IGNORECASE,
)

SHORT_SENTENCE_WORDS = 12
SHORT_PARAGRAPH_WORDS = 25


@dataclass(frozen=True)
class TextFeatures:
    """Feature vector of one text."""

    word_count: int
    sentence_count: int
    avg_sentence_length: float
    emoji_rate: float
    hashtag_rate: float
    terms: Dict[str, int] = field(default_factory=dict)
    paragraph_count: int = 0
    paragraph_pattern: str = "single_block"
    uses_list: bool = False
    uses_question: bool = False
    disclosure_markers: int = 0
    authority_markers: int = 0
    has_story: bool = False
    has_call_to_action: bool = False
    opening_type: str = "statement"
    structure: str = "single_thought"

    def pattern_ids(self) -> List[str]:
        """Identifiers of the patterns present, used for performance lift."""
        ids = [
            f"opening:{self.opening_type}",
            f"structure:{self.structure}",
            f"paragraphs:{self.paragraph_pattern}",
        ]
        flags = (
            ("question", self.uses_question),
            ("list", self.uses_list),
            ("emoji", self.emoji_rate > 0),
            ("hashtag", self.hashtag_rate > 0),
            ("disclosure", self.disclosure_markers > 0),
            ("authority", self.authority_markers > 0),
            ("story", self.has_story),
            ("call_to_action", self.has_call_to_action),
            ("short_sentences", 0 < self.avg_sentence_length <= SHORT_SENTENCE_WORDS),
        )
        ids.extend(name for name, present in flags if present)
        return sorted(ids)


def extract_features(text: str) -> TextFeatures:
    text = text or ""
    words = text.split()
    word_count = len(words)
    sentences = [s for s in SENTENCE_PATTERN.findall(text) if s.split()]
    sentence_lengths = [len(s.split()) for s in sentences]
    paragraphs = [p for p in PARAGRAPH_SPLIT.split(text.strip()) if p.strip()]

    if len(paragraphs) <= 1:
        paragraph_pattern = "single_block"
    elif word_count / len(paragraphs) <= SHORT_PARAGRAPH_WORDS:
        paragraph_pattern = "short_paragraphs"
    else:
        paragraph_pattern = "long_paragraphs"

    denominator = max(word_count, 1)
    return TextFeatures(
        word_count=word_count,
        sentence_count=len(sentences),
        avg_sentence_length=(
            sum(sentence_lengths) / len(sentence_lengths) if sentence_lengths else 0.0
        ),
        emoji_rate=len(EMOJI_PATTERN.findall(text)) / denominator,
        hashtag_rate=len(HASHTAG_PATTERN.findall(text)) / denominator,
        terms=dict(Counter(content_terms(text))),
        paragraph_count=len(paragraphs),
        paragraph_pattern=paragraph_pattern,
        uses_list=len(LIST_LINE_PATTERN.findall(text)) >= 2,
        uses_question="?" in text,
        disclosure_markers=len(DISCLOSURE_PATTERN.findall(text)),
        authority_markers=len(AUTHORITY_PATTERN.findall(text)),
        has_story=bool(STORY_PATTERN.search(text)),
        has_call_to_action=bool(CTA_PATTERN.search(text)),
        opening_type=classify_opening(text),
        structure=classify_structure(text),
    )


__all__ = ["TextFeatures", "extract_features"]
