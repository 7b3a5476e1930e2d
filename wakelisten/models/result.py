"""Result codes and the per-session answer record."""

from dataclasses import dataclass, asdict
from enum import IntEnum
from typing import Any, Dict


class ResultStatus(IntEnum):
    """Numeric status written to the session result file."""
    OK = 0
    ERROR_PARSING = 1
    ERROR_EXECUTING = 2
    ERROR_STT = 100


UNKNOWN_COMMAND = "<unknown>"


@dataclass
class AnswerRecord:
    """What was answered for one session."""
    status: ResultStatus
    message: str
    command: str
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = int(self.status)
        # Unscored results are recorded with full confidence
        data["confidence"] = self.confidence or 1
        return data
