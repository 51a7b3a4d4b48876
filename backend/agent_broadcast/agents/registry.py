import threading
from typing import Any, Dict, Optional

import boto3
from django.conf import settings

from .proxies.ssm import SsmAgentProxy

TRANSPORTS = ("ssm",)


class AgentDirectory:
    def __init__(self, config: Dict[str, Any]):
        self.config = config or {}
        self.transport = str(self.config.get("transport") or "ssm").strip().lower()
        if self.transport not in TRANSPORTS:
            raise ValueError(f"unsupported agent transport: {self.transport}")
        self._ssm_config = self.config.get("ssm") if isinstance(self.config.get("ssm"), dict) else {}
        self._client = None
        self._client_lock = threading.Lock()

    def _ssm_client(self):
        with self._client_lock:
            if self._client is None:
                region = str(self._ssm_config.get("region") or "").strip()
                self._client = boto3.client("ssm", region_name=region) if region else boto3.client("ssm")
            return self._client

    def with_agent_id(self, agent_id: Optional[str], name: str = "") -> SsmAgentProxy:
        if not agent_id:
            raise ValueError(f"agent id required for {name or 'instance'}")
        return SsmAgentProxy(agent_id, name, self._ssm_config, client=self._ssm_client())


def get_agent_directory() -> AgentDirectory:
    return AgentDirectory(getattr(settings, "AGENT_DIRECTORY", {}))
