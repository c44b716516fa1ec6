"""Semantic extraction: syntax trees to Action Model source units."""

from .classifier import classify
from .extractor import SemanticExtractor, detect_framework, extract

__all__ = ["SemanticExtractor", "classify", "detect_framework", "extract"]
