import json
import uuid
from typing import Any, Dict, Optional

from django.db import models
from django.db.models import Q


class Instance(models.Model):
    deployment = models.CharField(max_length=200, blank=True)
    job = models.CharField(max_length=200)
    index = models.PositiveIntegerField(default=0)
    uuid = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    compilation = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["id"]

    def __str__(self) -> str:
        return self.name

    @property
    def name(self) -> str:
        return f"{self.job}/{self.uuid}"

    @property
    def active_vm(self) -> Optional["Vm"]:
        prefetched = getattr(self, "active_vms", None)
        if prefetched is not None:
            return prefetched[0] if prefetched else None
        return self.vms.filter(active=True).first()

    @property
    def agent_id(self) -> Optional[str]:
        vm = self.active_vm
        if not vm or not vm.agent_id:
            return None
        return vm.agent_id


class Vm(models.Model):
    instance = models.ForeignKey(Instance, on_delete=models.CASCADE, related_name="vms")
    agent_id = models.CharField(max_length=255, blank=True)
    cid = models.CharField(max_length=255, blank=True)
    active = models.BooleanField(default=False)
    network_spec_json = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(
                fields=["instance"],
                condition=Q(active=True),
                name="uniq_active_vm_per_instance",
            ),
        ]

    def __str__(self) -> str:
        return self.cid or self.agent_id or f"vm-{self.pk}"

    @property
    def network_spec(self) -> Dict[str, Any]:
        if self.network_spec_json is None:
            return {}
        return json.loads(self.network_spec_json)

    @network_spec.setter
    def network_spec(self, value: Dict[str, Any]) -> None:
        self.network_spec_json = json.dumps(value)


class AgentDnsVersion(models.Model):
    agent_id = models.CharField(max_length=255, unique=True)
    dns_version = models.BigIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["agent_id"]

    def __str__(self) -> str:
        return f"{self.agent_id}@{self.dns_version}"
