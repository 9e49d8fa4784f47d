# Overview: In-process branch publisher; delivery transports subscribe here.

from __future__ import annotations

import queue
import threading
from collections import deque


class BranchPublisher:
    """
    Publish notification payloads to everyone listening on a branch.

    Subscribers are plain queues so an SSE endpoint, a websocket bridge, or a
    Redis relay can drain them without the workflow knowing which transport
    is in use. Publishing never blocks: a subscriber whose queue is full is
    dropped.
    """

    def __init__(self, queue_size: int = 100, history_size: int = 200):
        self.queue_size = queue_size
        self._subscribers: dict[int, list[queue.Queue]] = {}
        self._lock = threading.Lock()
        self.recent: deque = deque(maxlen=history_size)

    def init_app(self, app) -> None:
        self.queue_size = app.config.get("REALTIME_QUEUE_SIZE", self.queue_size)
        app.extensions["branch_publisher"] = self

    def subscribe(self, branch_id: int) -> queue.Queue:
        q: queue.Queue = queue.Queue(maxsize=self.queue_size)
        with self._lock:
            self._subscribers.setdefault(branch_id, []).append(q)
        return q

    def unsubscribe(self, branch_id: int, q: queue.Queue) -> None:
        with self._lock:
            listeners = self._subscribers.get(branch_id, [])
            if q in listeners:
                listeners.remove(q)
            if not listeners:
                self._subscribers.pop(branch_id, None)

    def subscriber_count(self, branch_id: int) -> int:
        with self._lock:
            return len(self._subscribers.get(branch_id, []))

    def publish(self, branch_id: int, payload: dict) -> int:
        """Deliver `payload` to every subscriber of `branch_id`; returns delivery count."""
        message = {"type": "notification", "branch_id": branch_id, "notification": payload}
        self.recent.append(message)

        with self._lock:
            listeners = list(self._subscribers.get(branch_id, []))

        delivered = 0
        for q in listeners:
            try:
                q.put_nowait(message)
                delivered += 1
            except queue.Full:
                self.unsubscribe(branch_id, q)
        return delivered

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()
        self.recent.clear()
