import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

PENDING = "pending"
SUCCESS = "success"
FAILED = "failed"
UNRESPONSIVE = "unresponsive"

OUTCOMES = (SUCCESS, FAILED, UNRESPONSIVE)


@dataclass
class BroadcastRequest:
    agent_id: str
    name: str
    request_id: Optional[str] = None
    outcome: str = PENDING

    @property
    def is_pending(self) -> bool:
        return self.outcome == PENDING


class ResponseTracker:
    """Per-broadcast bookkeeping of dispatched requests.

    Slots are registered up front, one per agent, so a completion that fires
    before the proxy has even returned its request id still finds its slot.
    Every transition happens under one lock and only a pending slot can be
    resolved, which makes the first resolution win: a reply that races the
    deadline is dropped once the slot has been marked unresponsive.

    ``on_settled`` fires once, after every slot has been resolved and released
    by the caller (i.e. its side effects are done). It never fires for a
    broadcast in which the deadline expired anything; the deadline path uses
    ``wait_released`` instead so in-flight side effects still finish first.
    """

    def __init__(self, on_settled: Optional[Callable[[], None]] = None):
        self._lock = threading.Lock()
        self._released_changed = threading.Condition(self._lock)
        self._requests: Dict[str, BroadcastRequest] = {}
        self._by_request_id: Dict[str, str] = {}
        self._released = set()
        self._on_settled = on_settled
        self._settled = False

    def __len__(self) -> int:
        return len(self._requests)

    def register(self, agent_id: str, name: str, request_id: Optional[str] = None) -> BroadcastRequest:
        with self._lock:
            if agent_id in self._requests:
                raise ValueError(f"agent {agent_id} is already tracked")
            request = BroadcastRequest(agent_id=agent_id, name=name)
            self._requests[agent_id] = request
            if request_id is not None:
                request.request_id = request_id
                self._by_request_id[request_id] = agent_id
            return request

    def bind(self, agent_id: str, request_id: Optional[str]) -> None:
        with self._lock:
            request = self._requests[agent_id]
            request.request_id = request_id
            if request_id is not None:
                self._by_request_id[request_id] = agent_id

    def get(self, agent_id: str) -> BroadcastRequest:
        return self._requests[agent_id]

    def find(self, request_id: str) -> Optional[BroadcastRequest]:
        with self._lock:
            agent_id = self._by_request_id.get(request_id)
            return self._requests.get(agent_id) if agent_id else None

    def requests(self) -> List[BroadcastRequest]:
        with self._lock:
            return list(self._requests.values())

    def resolve(self, agent_id: str, outcome: str) -> bool:
        if outcome not in (SUCCESS, FAILED):
            raise ValueError(f"cannot resolve a request as {outcome!r}")
        with self._lock:
            request = self._requests.get(agent_id)
            if request is None or not request.is_pending:
                return False
            request.outcome = outcome
            return True

    def resolve_request(self, request_id: str, outcome: str) -> bool:
        with self._lock:
            agent_id = self._by_request_id.get(request_id)
        if agent_id is None:
            return False
        return self.resolve(agent_id, outcome)

    def release(self, agent_id: str) -> None:
        notify = False
        with self._lock:
            request = self._requests.get(agent_id)
            if request is None or request.is_pending or request.outcome == UNRESPONSIVE:
                return
            self._released.add(agent_id)
            self._released_changed.notify_all()
            if not self._settled and len(self._released) == len(self._requests):
                self._settled = True
                notify = True
        if notify and self._on_settled:
            self._on_settled()

    def pending(self) -> List[BroadcastRequest]:
        with self._lock:
            return [request for request in self._requests.values() if request.is_pending]

    def expire(self) -> List[BroadcastRequest]:
        with self._lock:
            stragglers = [request for request in self._requests.values() if request.is_pending]
            for request in stragglers:
                request.outcome = UNRESPONSIVE
            return stragglers

    def counts(self) -> Dict[str, int]:
        with self._lock:
            counts = {outcome: 0 for outcome in (PENDING,) + OUTCOMES}
            for request in self._requests.values():
                counts[request.outcome] += 1
            return counts

    def wait_released(self, timeout: Optional[float] = None) -> bool:
        """Block until every resolved slot has been released by its handler."""
        with self._released_changed:
            return self._released_changed.wait_for(self._resolved_all_released, timeout)

    def _resolved_all_released(self) -> bool:
        return all(
            agent_id in self._released
            for agent_id, request in self._requests.items()
            if request.outcome in (SUCCESS, FAILED)
        )
