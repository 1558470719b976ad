"""Voice profile learning and draft scoring."""
from engagement_engine.voice.features import TextFeatures, extract_features
from engagement_engine.voice.learner import VoicePatternLearner

__all__ = ["TextFeatures", "extract_features", "VoicePatternLearner"]
