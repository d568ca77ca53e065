"""
Feature detection modules for print-orientation analysis.

Modules:
    feature_detector: flat surfaces, hole candidates, overhangs
"""

from .feature_detector import FeatureDetectionResult, FeatureDetector, detect_features

__all__ = ["FeatureDetectionResult", "FeatureDetector", "detect_features"]
