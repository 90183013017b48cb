"""Progress events emitted while a diff runs."""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Callable, Optional, TextIO

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ProgressEvent(BaseModel):
    tool: str = "diff"
    phase: str
    detail: Optional[str] = None
    current: Optional[int] = None
    total: Optional[int] = None
    extra: dict[str, Any] = Field(default_factory=dict)

    def to_params(self) -> dict[str, Any]:
        """Flatten into the worker's notification params shape."""
        params: dict[str, Any] = {"tool": self.tool, "phase": self.phase}
        if self.detail:
            params["detail"] = self.detail
        if self.current is not None:
            params["current"] = self.current
        if self.total is not None:
            params["total"] = self.total
        params.update(self.extra)
        return params


ProgressListener = Callable[[ProgressEvent], None]


class ProgressReporter:
    """Fans progress events out to listeners. Listener errors never break a run."""

    def __init__(self, tool: str = "diff", context: Optional[dict[str, Any]] = None):
        self.tool = tool
        self.context = dict(context or {})
        self._listeners: list[ProgressListener] = []

    def subscribe(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    def emit(
        self,
        phase: str,
        detail: Optional[str] = None,
        current: Optional[int] = None,
        total: Optional[int] = None,
        **extra: Any,
    ) -> ProgressEvent:
        event = ProgressEvent(
            tool=self.tool, phase=phase, detail=detail,
            current=current, total=total, extra={**self.context, **extra},
        )
        logger.debug("progress: %s %s", phase, detail or "")
        for listener in self._listeners:
            try:
                listener(event)
            except Exception as e:
                logger.warning("Progress listener failed: %s", e)
        return event


class JsonRpcProgressSink:
    """Writes events as JSON-RPC ``progress`` notifications, one per line."""

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream or sys.stdout

    def __call__(self, event: ProgressEvent) -> None:
        message = {"jsonrpc": "2.0", "method": "progress", "params": event.to_params()}
        self.stream.write(json.dumps(message, default=str) + "\n")
        self.stream.flush()
