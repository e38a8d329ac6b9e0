"""Record processing stage."""

from eventpipe.core.processing.features import calculate_engagement_score, engineer_features
from eventpipe.core.processing.processor import DataProcessor
from eventpipe.core.processing.transformer import (
    build_processed_record,
    normalize_text,
    parse_timestamp,
    transform_record,
)
from eventpipe.core.processing.validator import validate_record

__all__ = [
    "DataProcessor",
    "build_processed_record",
    "calculate_engagement_score",
    "engineer_features",
    "normalize_text",
    "parse_timestamp",
    "transform_record",
    "validate_record",
]
