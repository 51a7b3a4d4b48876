from django.apps import AppConfig


class AgentBroadcastConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "agent_broadcast"
    label = "agent_broadcast"
