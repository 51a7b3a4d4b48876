from typing import Any, Callable, Dict, Optional, Protocol, Sequence

ResponseCallback = Callable[[Dict[str, Any]], None]


class AgentProxy(Protocol):
    """Remote handle for a single agent.

    ``sync_dns`` returns a request id straight away and calls ``on_complete``
    at most once, from whatever thread the transport delivers replies on.
    """

    def delete_arp_entries(self, ip_addresses: Sequence[str]) -> None:
        ...

    def sync_dns(self, blob_id: str, checksum: str, version: int, on_complete: ResponseCallback) -> Optional[str]:
        ...

    def cancel_sync_dns(self, request_id: str) -> None:
        ...
