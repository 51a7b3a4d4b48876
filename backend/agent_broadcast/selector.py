from typing import List, Optional

from django.db.models import Prefetch

from .models import Instance, Vm


class InstanceSelector:
    """Filters the instance inventory down to agents that can take a broadcast.

    An instance is a target only when it has an active VM with an agent id
    and is not a compilation instance. When ``exclude_cid`` is given, the
    instance whose active VM carries that cid is dropped as well: that VM is
    still being created and has no agent to talk to yet.
    """

    def queryset(self):
        return (
            Instance.objects.filter(compilation=False, vms__active=True)
            .prefetch_related(Prefetch("vms", queryset=Vm.objects.filter(active=True), to_attr="active_vms"))
            .distinct()
            .order_by("id")
        )

    def select(self, exclude_cid: Optional[str] = None) -> List[Instance]:
        selected: List[Instance] = []
        for instance in self.queryset():
            vm = instance.active_vm
            if vm is None or not vm.agent_id:
                continue
            if exclude_cid is not None and vm.cid == exclude_cid:
                continue
            selected.append(instance)
        return selected
