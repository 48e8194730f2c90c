"""Vision collaborator: before/after imagery verdicts for stage 1."""

from coastguard.vision.analyzer import LLMVisionAnalyzer, VisionAnalyzer, VisionVerdict
from coastguard.vision.greenness import GreennessEstimator, NullGreennessEstimator
from coastguard.vision.images import ImageLoader

__all__ = [
    "GreennessEstimator",
    "ImageLoader",
    "LLMVisionAnalyzer",
    "NullGreennessEstimator",
    "VisionAnalyzer",
    "VisionVerdict",
]
