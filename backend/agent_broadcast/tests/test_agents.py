import unittest
from unittest import mock

from botocore.exceptions import ClientError
from django.test import TestCase, override_settings

from agent_broadcast.agents import AgentDirectory, get_agent_directory
from agent_broadcast.agents.proxies.ssm import SsmAgentProxy, _response_body


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "GetCommandInvocation")


class SsmAgentProxyTests(unittest.TestCase):
    def setUp(self):
        self.client = mock.Mock()
        self.client.send_command.return_value = {"Command": {"CommandId": "cmd-123"}}
        self.proxy = SsmAgentProxy(
            "i-0abc",
            "router/7f0c",
            {"poll_interval_seconds": 0.001, "max_wait_seconds": 0.5, "sync_dns_command": "/opt/agent/bin/sync-dns"},
            client=self.client,
        )

    def test_delete_arp_entries_sends_one_command(self):
        self.proxy.delete_arp_entries(["10.0.0.1", "10.0.0.2"])
        kwargs = self.client.send_command.call_args.kwargs
        self.assertEqual(kwargs["InstanceIds"], ["i-0abc"])
        self.assertEqual(kwargs["DocumentName"], "AWS-RunShellScript")
        self.assertEqual(kwargs["Parameters"], {"commands": ["arp -d 10.0.0.1 || true", "arp -d 10.0.0.2 || true"]})

    def test_delete_arp_entries_without_addresses_is_a_noop(self):
        self.proxy.delete_arp_entries([])
        self.client.send_command.assert_not_called()

    @mock.patch("agent_broadcast.agents.proxies.ssm.threading.Thread")
    def test_sync_dns_returns_command_id_and_watches(self, thread_cls):
        callback = mock.Mock()
        request_id = self.proxy.sync_dns("blob-1", "sha-1", 4, callback)
        self.assertEqual(request_id, "cmd-123")
        self.assertEqual(
            self.client.send_command.call_args.kwargs["Parameters"],
            {"commands": ["/opt/agent/bin/sync-dns blob-1 sha-1 4"]},
        )
        self.assertEqual(thread_cls.call_args.kwargs["args"], ("cmd-123", callback))
        thread_cls.return_value.start.assert_called_once_with()
        callback.assert_not_called()

    def test_wait_for_response_polls_until_done(self):
        self.client.get_command_invocation.side_effect = [
            _client_error("InvocationDoesNotExist"),
            {"Status": "InProgress"},
            {"Status": "Success", "StandardOutputContent": '{"value": "synced"}\n'},
        ]
        self.assertEqual(self.proxy._wait_for_response("cmd-123"), {"value": "synced"})
        self.assertEqual(self.client.get_command_invocation.call_count, 3)

    def test_wait_for_response_gives_up(self):
        self.proxy.max_wait = 0.01
        self.client.get_command_invocation.return_value = {"Status": "InProgress"}
        self.assertIsNone(self.proxy._wait_for_response("cmd-123"))

    def test_wait_for_response_stops_on_api_error(self):
        self.client.get_command_invocation.side_effect = _client_error("AccessDeniedException")
        self.assertIsNone(self.proxy._wait_for_response("cmd-123"))

    @mock.patch("agent_broadcast.agents.proxies.ssm.connections")
    def test_watch_calls_back_once(self, connections):
        callback = mock.Mock()
        self.client.get_command_invocation.return_value = {"Status": "Success", "StandardOutputContent": "synced"}
        self.proxy._watch("cmd-123", callback)
        callback.assert_called_once_with({"value": "synced"})
        connections.close_all.assert_called_once_with()

    @mock.patch("agent_broadcast.agents.proxies.ssm.connections")
    def test_watch_skips_callback_when_cancelled(self, connections):
        callback = mock.Mock()
        self.client.get_command_invocation.return_value = {"Status": "Cancelled"}
        self.proxy._watch("cmd-123", callback)
        callback.assert_not_called()

    def test_response_bodies(self):
        self.assertEqual(_response_body("Success", {"StandardOutputContent": '{"value": "unsynced"}'}), {"value": "unsynced"})
        self.assertEqual(_response_body("Success", {"StandardOutputContent": "[1, 2]"}), {"value": "[1, 2]"})
        self.assertEqual(_response_body("Failed", {}), {"value": "failed", "status": "Failed"})
        self.assertEqual(_response_body("TimedOut", {}), {"value": "failed", "status": "TimedOut"})
        self.assertIsNone(_response_body("Cancelling", {}))

    def test_cancel_sync_dns(self):
        self.proxy.cancel_sync_dns("cmd-123")
        self.client.cancel_command.assert_called_once_with(CommandId="cmd-123", InstanceIds=["i-0abc"])

    def test_cancel_sync_dns_logs_api_errors(self):
        self.client.cancel_command.side_effect = _client_error("InvalidCommandId")
        with self.assertLogs("agent_broadcast.agents.proxies.ssm", level="WARNING"):
            self.proxy.cancel_sync_dns("cmd-123")


class AgentDirectoryTests(TestCase):
    @mock.patch("agent_broadcast.agents.registry.boto3.client")
    def test_with_agent_id_shares_one_client(self, boto_client):
        directory = AgentDirectory({"transport": "ssm", "ssm": {"region": "us-west-2"}})
        first = directory.with_agent_id("i-1", "router/1")
        second = directory.with_agent_id("i-2", "router/2")
        self.assertIsInstance(first, SsmAgentProxy)
        self.assertEqual((first.agent_id, first.name), ("i-1", "router/1"))
        self.assertIs(first.client, second.client)
        boto_client.assert_called_once_with("ssm", region_name="us-west-2")

    def test_requires_agent_id(self):
        directory = AgentDirectory({})
        with self.assertRaises(ValueError):
            directory.with_agent_id(None, "router/1")

    def test_rejects_unknown_transport(self):
        with self.assertRaises(ValueError):
            AgentDirectory({"transport": "carrier-pigeon"})

    @override_settings(AGENT_DIRECTORY={"transport": "ssm", "ssm": {"document_name": "Agent-SyncDns"}})
    @mock.patch("agent_broadcast.agents.registry.boto3.client")
    def test_get_agent_directory_reads_settings(self, boto_client):
        proxy = get_agent_directory().with_agent_id("i-1", "router/1")
        self.assertEqual(proxy.document_name, "Agent-SyncDns")
        boto_client.assert_called_once_with("ssm")
