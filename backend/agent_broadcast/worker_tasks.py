import logging
from typing import Any, Dict, List, Optional

from .broadcaster import AgentBroadcaster

logger = logging.getLogger(__name__)


def sync_dns(blob_id: str, checksum: str, version: int, exclude_cid: Optional[str] = None) -> Dict[str, Any]:
    broadcaster = AgentBroadcaster()
    targets = broadcaster.select_targets(exclude_cid)
    summary = broadcaster.sync_dns(targets, blob_id, checksum, version)
    return summary.as_dict()


def delete_arp_entries(exclude_cid: Optional[str], ip_addresses: List[str]) -> None:
    logger.info("Deleting arp entries for %d address(es), excluding cid=%s", len(ip_addresses), exclude_cid)
    AgentBroadcaster().delete_arp_entries(exclude_cid, ip_addresses)
