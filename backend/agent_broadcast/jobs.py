from typing import Optional

import redis
from django.conf import settings
from rq import Queue


def enqueue_job(func_path: str, *args, job_timeout: Optional[int] = None) -> str:
    redis_url = getattr(settings, "DIRECTOR_JOBS_REDIS_URL", "redis://redis:6379/0")
    if job_timeout is None:
        job_timeout = int(settings.DIRECTOR_JOB_TIMEOUT_SECONDS)
    queue = Queue("default", connection=redis.Redis.from_url(redis_url))
    job = queue.enqueue(func_path, *args, job_timeout=job_timeout)
    return job.id


def enqueue_sync_dns(blob_id: str, checksum: str, version: int, exclude_cid=None) -> str:
    return enqueue_job("agent_broadcast.worker_tasks.sync_dns", blob_id, checksum, version, exclude_cid)


def enqueue_delete_arp_entries(exclude_cid, ip_addresses) -> str:
    return enqueue_job("agent_broadcast.worker_tasks.delete_arp_entries", exclude_cid, list(ip_addresses))
