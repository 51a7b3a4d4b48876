from .ssm import SsmAgentProxy

__all__ = ["SsmAgentProxy"]
