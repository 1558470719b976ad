"""
Tests for engagement_engine.voice (feature extraction and VoicePatternLearner).

Covers:
    - Untrained profile on an empty corpus, neutral scoring
    - Idempotent learning
    - Comment and recency weighting
    - Performance lift patterns
    - Tone classification and its failure mode
"""

from unittest.mock import AsyncMock

import pytest

from engagement_engine.config import VoiceConfig
from engagement_engine.exceptions import ClassificationError, InvalidInputError
from engagement_engine.models import VoiceProfile
from engagement_engine.voice import VoicePatternLearner
from engagement_engine.voice.features import extract_features


@pytest.fixture
def learner(clock):
    return VoicePatternLearner(clock=clock)


# ===========================================================================
# Features
# ===========================================================================


class TestExtractFeatures:
    """Per-text feature extraction."""

    def test_paragraph_and_list_detection(self):
        text = "Three rules:\n1. Listen first\n2. Decide fast\n3. Own it"
        features = extract_features(text)

        assert features.uses_list is True
        assert features.paragraph_count == 4
        assert features.paragraph_pattern == "short_paragraphs"

    def test_single_block(self):
        assert extract_features("One thought only.").paragraph_pattern == "single_block"

    def test_markers(self):
        features = extract_features(
            "Honestly, I failed. I've coached 200 founders and 40% of them struggle too."
        )
        assert features.disclosure_markers >= 2
        assert features.authority_markers == 3

    def test_pattern_ids_are_sorted(self):
        ids = extract_features("Why do teams stall? Tell me your experience.").pattern_ids()
        assert ids == sorted(ids)
        assert "question" in ids
        assert "call_to_action" in ids


# ===========================================================================
# learn
# ===========================================================================


@pytest.mark.asyncio
async def test_empty_corpus_gives_untrained_profile(learner, clock):
    profile = await learner.learn([])

    assert profile.sample_count == 0
    assert not profile.is_trained
    assert profile.last_updated_at == clock.now


@pytest.mark.asyncio
async def test_blank_items_are_ignored(learner, post_factory, comment_factory):
    profile = await learner.learn([post_factory("p", text="   "), comment_factory("c", "")])
    assert profile.sample_count == 0


@pytest.mark.asyncio
async def test_counts_posts_and_comments(learner, post_factory, comment_factory):
    profile = await learner.learn(
        [post_factory("p1"), post_factory("p2"), comment_factory("c1", "Great point")]
    )
    assert (profile.sample_count, profile.post_count, profile.comment_count) == (3, 2, 1)


@pytest.mark.asyncio
async def test_learning_is_idempotent(post_factory, clock, comment_factory):
    corpus = [
        post_factory("p1", text="Why do leaders burn out?\n\nThey never rest.", days_ago=3),
        post_factory("p2", text="I failed at hiring. Honestly it hurt.", days_ago=40),
        comment_factory("c1", "Agree, rest is a strategy.", days_ago=1),
    ]

    first = await VoicePatternLearner(clock=clock).learn(corpus)
    clock.advance(days=2)
    second = await VoicePatternLearner(clock=clock).learn(list(reversed(corpus)))

    assert first.signatures() == second.signatures()
    assert first.last_updated_at != second.last_updated_at


@pytest.mark.asyncio
async def test_comments_count_at_reduced_weight(post_factory, clock, comment_factory):
    corpus = [post_factory("p", text="Leadership matters"), comment_factory("c", "Hiring hiring hiring")]

    default = await VoicePatternLearner(clock=clock).learn(corpus)
    equal = await VoicePatternLearner(VoiceConfig(comment_weight=1.0), clock=clock).learn(corpus)

    assert default.lexical_signature.common_words == ["leadership", "matters", "hiring"]
    assert equal.lexical_signature.common_words[0] == "hiring"


@pytest.mark.asyncio
async def test_rates_are_weighted_by_kind(learner, post_factory, comment_factory):
    profile = await learner.learn(
        [post_factory("p", text="Is this working?"), comment_factory("c", "Yes it is.")]
    )
    assert profile.structural_signature.question_usage_rate == pytest.approx(1 / 1.3, abs=1e-4)


@pytest.mark.asyncio
async def test_older_posts_decay(learner, post_factory):
    profile = await learner.learn(
        [
            post_factory("new", text="Is this working?"),
            post_factory("old", text="It works.", days_ago=180),
        ]
    )
    # weights 1.0 and 0.5 at one half-life
    assert profile.structural_signature.question_usage_rate == pytest.approx(0.6667, abs=1e-4)


@pytest.mark.asyncio
async def test_performance_lift_uses_posts_only(learner, post_factory, comment_factory):
    profile = await learner.learn(
        [
            post_factory("a", text="Why does this work?", reactions=30),
            post_factory("b", text="It simply works.", reactions=10),
            comment_factory("c", "Does it though?"),
        ]
    )

    lift = profile.performance_correlated_patterns["question"]
    assert lift.lift_score == 0.5
    assert lift.correlation == 1.0
    assert lift.support == 1


# ===========================================================================
# Tone classification
# ===========================================================================


@pytest.mark.asyncio
async def test_tone_distribution_is_weighted_average(post_factory, clock, comment_factory):
    classifier = AsyncMock()
    classifier.classify.return_value = {"casual": 0.2, "professional": 0.8}
    learner = VoicePatternLearner(classifier=classifier, clock=clock)

    profile = await learner.learn([post_factory("a"), comment_factory("c", "Nice one")])

    assert classifier.classify.await_count == 2
    assert profile.tone_distribution == {"casual": 0.2, "professional": 0.8}
    assert profile.warnings == []


@pytest.mark.asyncio
async def test_classifier_failure_becomes_warning(post_factory, clock):
    classifier = AsyncMock()
    classifier.classify.side_effect = ClassificationError("no usable weights")
    learner = VoicePatternLearner(classifier=classifier, clock=clock)

    profile = await learner.learn([post_factory("a")])

    assert profile.is_trained
    assert profile.tone_distribution == {}
    assert "no usable weights" in profile.warnings[0]


# ===========================================================================
# score
# ===========================================================================


def test_untrained_profile_scores_neutral(learner):
    score = learner.score("Any draft at all", VoiceProfile())

    assert score.untrained is True
    assert (score.authenticity, score.authority, score.vulnerability, score.engagement_potential) == (
        50,
        50,
        50,
        50,
    )


@pytest.mark.parametrize("text", ["", "  \n "])
def test_blank_draft_raises(learner, text):
    with pytest.raises(InvalidInputError):
        learner.score(text, VoiceProfile())


@pytest.mark.asyncio
async def test_draft_in_own_voice_scores_higher(learner, post_factory):
    own = "Leadership is about listening. Teams notice everything."
    profile = await learner.learn([post_factory("p", text=own)])

    matching = learner.score(own, profile)
    foreign = learner.score("#growth #hustle \U0001F680\U0001F680 BUY NOW", profile)

    assert matching.authenticity > foreign.authenticity
    for score in (matching, foreign):
        assert not score.untrained
        for value in score.to_dict().values():
            if not isinstance(value, bool):
                assert 0 <= value <= 100


@pytest.mark.asyncio
async def test_dimensions_cap_marker_counts(learner, post_factory):
    profile = await learner.learn([post_factory("p")])
    dims = learner.dimensions(
        extract_features("I've coached 200 founders and 40% of them say so."), profile
    )

    assert dims["authority_markers"] == 1.0
    assert dims["disclosure_markers"] == 0.0
    assert all(0.0 <= value <= 1.0 for value in dims.values())
