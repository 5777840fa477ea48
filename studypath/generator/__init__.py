from studypath.generator.llm import RoadmapGenerator, classify_failure, extract_json
from studypath.generator.topic import clean_topic, sanitize_topic, validate_topic

__all__ = [
    "RoadmapGenerator",
    "classify_failure",
    "clean_topic",
    "extract_json",
    "sanitize_topic",
    "validate_topic",
]
