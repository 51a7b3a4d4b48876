import json
import logging
import shlex
import threading
import time
from typing import Any, Dict, Optional, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from django.db import connections

logger = logging.getLogger(__name__)

IN_PROGRESS_STATUSES = {"Pending", "InProgress", "Delayed"}
CANCELLED_STATUSES = {"Cancelled", "Cancelling"}


def _response_body(status: str, invocation: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    if status in CANCELLED_STATUSES:
        return None
    if status != "Success":
        return {"value": "failed", "status": status}
    stdout = str(invocation.get("StandardOutputContent") or "").strip()
    try:
        parsed = json.loads(stdout)
    except ValueError:
        return {"value": stdout}
    if isinstance(parsed, dict):
        return parsed
    return {"value": stdout}


class SsmAgentProxy:
    """Talks to an agent through SSM Run Command on its managed instance."""

    transport = "ssm"

    def __init__(self, agent_id: str, name: str, config: Dict[str, Any], client=None):
        self.agent_id = agent_id
        self.name = name
        self.config = config or {}
        self.region = str(self.config.get("region") or "").strip()
        self.document_name = str(self.config.get("document_name") or "AWS-RunShellScript").strip()
        self.sync_dns_command = str(self.config.get("sync_dns_command") or "/opt/agent/bin/sync-dns").strip()
        self.poll_interval = float(self.config.get("poll_interval_seconds") or 2)
        self.max_wait = float(self.config.get("max_wait_seconds") or 900)
        if client is None:
            client = boto3.client("ssm", region_name=self.region) if self.region else boto3.client("ssm")
        self.client = client

    def _send(self, commands: Sequence[str], comment: str) -> str:
        resp = self.client.send_command(
            InstanceIds=[self.agent_id],
            DocumentName=self.document_name,
            Parameters={"commands": list(commands)},
            Comment=comment[:100],
        )
        return resp["Command"]["CommandId"]

    def delete_arp_entries(self, ip_addresses: Sequence[str]) -> None:
        commands = [f"arp -d {shlex.quote(ip)} || true" for ip in ip_addresses]
        if not commands:
            return
        self._send(commands, f"delete_arp_entries {self.name}")

    def sync_dns(self, blob_id: str, checksum: str, version: int, on_complete) -> str:
        command = " ".join([self.sync_dns_command, shlex.quote(blob_id), shlex.quote(checksum), str(int(version))])
        command_id = self._send([command], f"sync_dns v{version} {self.name}")
        watcher = threading.Thread(
            target=self._watch,
            args=(command_id, on_complete),
            name=f"sync-dns-{self.agent_id}",
            daemon=True,
        )
        watcher.start()
        return command_id

    def cancel_sync_dns(self, request_id: str) -> None:
        try:
            self.client.cancel_command(CommandId=request_id, InstanceIds=[self.agent_id])
        except (ClientError, BotoCoreError) as exc:
            logger.warning("cancel_command %s on %s failed: %s", request_id, self.agent_id, exc)

    def _watch(self, command_id: str, on_complete) -> None:
        try:
            body = self._wait_for_response(command_id)
            if body is not None:
                on_complete(body)
        finally:
            connections.close_all()

    def _wait_for_response(self, command_id: str) -> Optional[Dict[str, Any]]:
        deadline = time.monotonic() + self.max_wait
        while time.monotonic() < deadline:
            time.sleep(self.poll_interval)
            try:
                out = self.client.get_command_invocation(CommandId=command_id, InstanceId=self.agent_id)
            except ClientError as exc:
                if exc.response.get("Error", {}).get("Code") == "InvocationDoesNotExist":
                    continue
                logger.warning("get_command_invocation %s on %s failed: %s", command_id, self.agent_id, exc)
                return None
            except BotoCoreError as exc:
                logger.warning("get_command_invocation %s on %s failed: %s", command_id, self.agent_id, exc)
                return None
            status = str(out.get("Status") or "")
            if status in IN_PROGRESS_STATUSES:
                continue
            return _response_body(status, out)
        logger.warning("sync_dns %s on %s: no result after %ss", command_id, self.agent_id, self.max_wait)
        return None
