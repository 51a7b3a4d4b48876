import os

import django
import redis
from rq import Worker


def main() -> None:
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "director.settings")
    django.setup()
    from django.conf import settings

    conn = redis.Redis.from_url(settings.DIRECTOR_JOBS_REDIS_URL)
    worker = Worker(["default"], connection=conn)
    worker.work()


if __name__ == "__main__":
    main()
