import json
import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from django.conf import settings

from .agents import AgentDirectory, get_agent_directory
from .ledger import VersionLedger
from .models import Instance
from .selector import InstanceSelector
from .tracker import FAILED, SUCCESS, UNRESPONSIVE, BroadcastRequest, ResponseTracker

logger = logging.getLogger(__name__)

SYNCED_RESPONSE = {"value": "synced"}


@dataclass
class BroadcastSummary:
    total: int
    elapsed_ms: int
    successful: int
    failed: int
    unresponsive: int
    unresponsive_agent_ids: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _validate_ip_addresses(ip_addresses: Any) -> List[str]:
    if not isinstance(ip_addresses, (list, tuple)):
        raise ValueError("ip_addresses must be a list of strings")
    for ip in ip_addresses:
        if not isinstance(ip, str) or not ip.strip():
            raise ValueError(f"invalid ip address: {ip!r}")
    return list(ip_addresses)


def _validate_targets(instances: Any) -> List[Tuple[str, str]]:
    if not isinstance(instances, (list, tuple)):
        raise ValueError("targets must be a list of instances")
    targets: List[Tuple[str, str]] = []
    seen = set()
    for instance in instances:
        if not isinstance(instance, Instance):
            raise ValueError(f"target is not an instance: {instance!r}")
        agent_id = instance.agent_id
        if not agent_id:
            raise ValueError(f"instance {instance.name} has no active agent")
        if agent_id in seen:
            raise ValueError(f"agent {agent_id} targeted more than once")
        seen.add(agent_id)
        targets.append((agent_id, instance.name))
    return targets


class AgentBroadcaster:
    """Sends the same command to many agents at once.

    ``delete_arp_entries`` fires and forgets. ``sync_dns`` dispatches to every
    target, then starts a single deadline timer; replies that match the
    acknowledgement are written to the DNS version ledger, anything still
    outstanding when the timer fires is cancelled and counted unresponsive.
    Individual agents never fail the broadcast as a whole.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        *,
        directory: Optional[AgentDirectory] = None,
        selector: Optional[InstanceSelector] = None,
        ledger: Optional[VersionLedger] = None,
    ):
        if timeout is None:
            timeout = settings.AGENT_BROADCAST_TIMEOUT_SECONDS
        if timeout <= 0:
            raise ValueError("broadcast timeout must be positive")
        self.timeout = timeout
        self._directory = directory
        self.selector = selector or InstanceSelector()
        self.ledger = ledger or VersionLedger()

    @property
    def directory(self) -> AgentDirectory:
        if self._directory is None:
            self._directory = get_agent_directory()
        return self._directory

    def select_targets(self, exclude_cid: Optional[str] = None) -> List[Instance]:
        return self.selector.select(exclude_cid)

    def delete_arp_entries(self, exclude_cid: Optional[str], ip_addresses: Sequence[str]) -> None:
        ips = _validate_ip_addresses(ip_addresses)
        for instance in self.select_targets(exclude_cid):
            agent_id = instance.agent_id
            try:
                agent = self.directory.with_agent_id(agent_id, instance.name)
                agent.delete_arp_entries(ips)
            except Exception as exc:
                logger.warning("agent_broadcaster: delete_arp_entries[%s]: %s", agent_id, exc)

    def sync_dns(self, instances: Sequence[Instance], blob_id: str, checksum: str, version: int) -> BroadcastSummary:
        if not isinstance(blob_id, str) or not blob_id:
            raise ValueError("blob_id is required")
        if not isinstance(checksum, str) or not checksum:
            raise ValueError("checksum is required")
        if isinstance(version, bool) or not isinstance(version, int):
            raise ValueError("version must be an integer")
        targets = _validate_targets(instances)

        done = threading.Event()
        tracker = ResponseTracker(on_settled=done.set)
        for agent_id, name in targets:
            tracker.register(agent_id, name)
        if not targets:
            done.set()

        logger.info(
            "agent_broadcaster: sync_dns: sending to %d agents %s",
            len(targets),
            json.dumps([agent_id for agent_id, _ in targets]),
        )

        started = time.monotonic()
        for request in tracker.requests():
            self._dispatch_sync_dns(tracker, request, blob_id, checksum, version)

        timer = self._start_deadline(tracker, done)
        done.wait()
        timer.cancel()

        elapsed_ms = int((time.monotonic() - started) * 1000)
        counts = tracker.counts()
        summary = BroadcastSummary(
            total=len(tracker),
            elapsed_ms=elapsed_ms,
            successful=counts[SUCCESS],
            failed=counts[FAILED],
            unresponsive=counts[UNRESPONSIVE],
            unresponsive_agent_ids=[r.agent_id for r in tracker.requests() if r.outcome == UNRESPONSIVE],
        )
        logger.info(
            "agent_broadcaster: sync_dns: attempted %d agents in %dms (%d successful, %d failed, %d unresponsive)",
            summary.total,
            summary.elapsed_ms,
            summary.successful,
            summary.failed,
            summary.unresponsive,
        )
        return summary

    def _dispatch_sync_dns(
        self, tracker: ResponseTracker, request: BroadcastRequest, blob_id: str, checksum: str, version: int
    ) -> None:
        agent_id = request.agent_id

        def on_complete(response: Dict[str, Any]) -> None:
            self._handle_sync_dns_response(tracker, agent_id, version, response)

        try:
            agent = self.directory.with_agent_id(agent_id, request.name)
            request_id = agent.sync_dns(blob_id, checksum, version, on_complete)
        except Exception as exc:
            logger.error("agent_broadcaster: sync_dns[%s]: dispatch failed: %s", agent_id, exc)
            if tracker.resolve(agent_id, FAILED):
                tracker.release(agent_id)
            return
        tracker.bind(agent_id, request_id)

    def _handle_sync_dns_response(
        self, tracker: ResponseTracker, agent_id: str, version: int, response: Dict[str, Any]
    ) -> None:
        if response == SYNCED_RESPONSE:
            if not tracker.resolve(agent_id, SUCCESS):
                return
            try:
                self.ledger.upsert(agent_id, version)
            finally:
                tracker.release(agent_id)
            return
        if not tracker.resolve(agent_id, FAILED):
            return
        logger.error("agent_broadcaster: sync_dns[%s]: received unexpected response %s", agent_id, response)
        tracker.release(agent_id)

    def _start_deadline(self, tracker: ResponseTracker, done: threading.Event) -> threading.Timer:
        timer = threading.Timer(self.timeout, self._expire_stragglers, args=(tracker, done))
        timer.daemon = True
        timer.start()
        return timer

    def _expire_stragglers(self, tracker: ResponseTracker, done: threading.Event) -> None:
        try:
            stragglers = tracker.expire()
            if not stragglers:
                return
            logger.warning(
                "agent_broadcaster: sync_dns: no response received for %d agent(s): [%s]",
                len(stragglers),
                ", ".join(request.agent_id for request in stragglers),
            )
            for request in stragglers:
                self._cancel_sync_dns(request)
        finally:
            # Ledger writes for replies that beat the deadline must land before the summary.
            tracker.wait_released()
            done.set()

    def _cancel_sync_dns(self, request: BroadcastRequest) -> None:
        if request.request_id is None:
            return
        try:
            agent = self.directory.with_agent_id(request.agent_id, request.name)
            agent.cancel_sync_dns(request.request_id)
        except Exception as exc:
            logger.warning("agent_broadcaster: sync_dns[%s]: cancel failed: %s", request.agent_id, exc)
