from .contracts import AgentProxy, ResponseCallback
from .registry import AgentDirectory, get_agent_directory

__all__ = ["AgentProxy", "ResponseCallback", "AgentDirectory", "get_agent_directory"]
