import logging

from django.db import DatabaseError, IntegrityError, transaction

from .models import AgentDnsVersion

logger = logging.getLogger(__name__)


class VersionLedger:
    """Last DNS version each agent acknowledged.

    Overlapping broadcasts can write the same agent at the same time, so the
    insert runs inside its own savepoint and a uniqueness conflict falls back
    to updating the row the other writer created. The last write wins; the
    stored value is not compared against the incoming one.
    """

    def upsert(self, agent_id: str, version: int) -> None:
        try:
            try:
                with transaction.atomic():
                    AgentDnsVersion.objects.create(agent_id=agent_id, dns_version=version)
                return
            except IntegrityError:
                pass
            record = AgentDnsVersion.objects.get(agent_id=agent_id)
            record.dns_version = version
            record.save(update_fields=["dns_version", "updated_at"])
        except (DatabaseError, AgentDnsVersion.DoesNotExist):
            logger.exception("agent_broadcaster: failed to record dns version %s for %s", version, agent_id)

    def get(self, agent_id: str):
        record = AgentDnsVersion.objects.filter(agent_id=agent_id).first()
        return record.dns_version if record else None
