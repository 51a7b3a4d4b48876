from typing import Any, Dict, List, Optional

from agent_broadcast.models import Instance, Vm


def make_instance(index: int, job: str = "fake-job-1", agent_id: str = "", cid: str = "", active: bool = True, compilation: bool = False) -> Instance:
    instance = Instance.objects.create(job=job, index=index, compilation=compilation, deployment="fake-deployment")
    if agent_id or cid:
        Vm.objects.create(instance=instance, agent_id=agent_id, cid=cid, active=active)
    return instance


class FakeAgent:
    def __init__(self, agent_id: str, reply: Optional[Dict[str, Any]] = None, request_id: str = "", raises: Optional[Exception] = None):
        self.agent_id = agent_id
        self.reply = reply
        self.request_id = request_id or f"{agent_id}-req-id"
        self.raises = raises
        self.sync_calls: List[tuple] = []
        self.cancelled: List[str] = []
        self.arp_calls: List[List[str]] = []
        self.callbacks: List[Any] = []

    def sync_dns(self, blob_id, checksum, version, on_complete):
        self.sync_calls.append((blob_id, checksum, version))
        self.callbacks.append(on_complete)
        if self.raises:
            raise self.raises
        if self.reply is not None:
            on_complete(self.reply)
        return self.request_id

    def cancel_sync_dns(self, request_id):
        self.cancelled.append(request_id)

    def delete_arp_entries(self, ip_addresses):
        if self.raises:
            raise self.raises
        self.arp_calls.append(list(ip_addresses))


class FakeDirectory:
    def __init__(self, agents: Dict[str, FakeAgent]):
        self.agents = agents
        self.lookups: List[tuple] = []

    def with_agent_id(self, agent_id, name=""):
        self.lookups.append((agent_id, name))
        return self.agents[agent_id]
