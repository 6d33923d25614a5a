"""Event models published over pub/sub."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class ProgressEvent:
    """Coarse transcription progress milestone."""
    progress: int  # 0-100
    status: str
    source_path: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class RecordingEvent:
    """Recording session lifecycle event."""
    event_type: str  # "started", "paused", "resumed", "stopped", "failed", "cleaned_up"
    state: str
    output_path: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)
