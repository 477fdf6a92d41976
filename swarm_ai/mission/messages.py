"""Message types and the coordinator inbox used by executors and retry requests."""

import queue
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class MessageType(Enum):
    TASK_FINISHED = "task_finished"  # executor → coordinator (success or error)
    RESCAN = "rescan"                # retry → coordinator (state was reset)
    SHUTDOWN = "shutdown"            # stop the loop without a verdict


@dataclass
class MissionMessage:
    type: MessageType
    task_id: Optional[int] = None
    content: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    msg_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])


class MessageBus:
    """Thread-safe single-consumer inbox backed by queue.Queue."""

    def __init__(self):
        self._inbox: queue.Queue[MissionMessage] = queue.Queue()

    def send(self, msg: MissionMessage) -> None:
        self._inbox.put(msg)

    def recv(self, timeout: float = 30.0) -> Optional[MissionMessage]:
        try:
            return self._inbox.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[MissionMessage]:
        """Remove and return every queued message without blocking."""
        drained = []
        while True:
            try:
                drained.append(self._inbox.get_nowait())
            except queue.Empty:
                return drained
