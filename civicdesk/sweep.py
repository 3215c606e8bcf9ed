# Periodic priority re-scoring. Run from cron or any external timer:
#
#   python -m civicdesk.sweep

import logging
import sys

from pymongo import MongoClient

from . import config
from .errors import EngineError
from .store import MongoStore
from .workflow import EscalationService

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


def main() -> int:
    client = MongoClient(config.MONGODB_URL)
    try:
        service = EscalationService(MongoStore(client[config.MONGODB_DB]))
        result = service.update_all_priorities()
    except EngineError as e:
        logger.error("Priority sweep aborted: %s", e)
        return 1
    finally:
        client.close()
    logger.info("Priority sweep: %d records updated, %d failed", result.updated, result.failed)
    return 0 if result.failed == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
