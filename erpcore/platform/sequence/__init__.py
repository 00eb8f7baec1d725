from erpcore.platform.sequence.models import Sequence
from erpcore.platform.sequence.schemas import SequenceCreate, SequenceRead
from erpcore.platform.sequence.service import (
    DEFAULT_SEQUENCES,
    SequenceService,
    format_number,
    parse_number,
    sequence_service,
)

__all__ = [
    "Sequence",
    "SequenceCreate",
    "SequenceRead",
    "DEFAULT_SEQUENCES",
    "SequenceService",
    "format_number",
    "parse_number",
    "sequence_service",
]
