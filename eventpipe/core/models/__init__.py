"""Pipeline data models."""

from eventpipe.core.models.events import PipelineEvent, PipelineEventType
from eventpipe.core.models.records import (
    PROCESSOR_VERSION,
    AttendanceRecord,
    Batch,
    EventRecord,
    GenericRecord,
    ProcessedBatch,
    ProcessedRecord,
    RawRecord,
    RecordEnvelope,
    RecordFeatures,
    RegistrationRecord,
    generate_pipeline_id,
    utcnow,
)

__all__ = [
    "PROCESSOR_VERSION",
    "AttendanceRecord",
    "Batch",
    "EventRecord",
    "GenericRecord",
    "PipelineEvent",
    "PipelineEventType",
    "ProcessedBatch",
    "ProcessedRecord",
    "RawRecord",
    "RecordEnvelope",
    "RecordFeatures",
    "RegistrationRecord",
    "generate_pipeline_id",
    "utcnow",
]
