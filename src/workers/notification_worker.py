import json
import logging

from core.config import get_settings
from core.dependencies import get_notification_service

# We need to configure logging here since workers are entry points
from core.logging_config import configure_logging
configure_logging(get_settings().LOG_LEVEL)

logger = logging.getLogger(__name__)


def lambda_handler(event, context):
    logger.info(f"Received {len(event['Records'])} notification jobs.")
    notification_service = get_notification_service()

    for record in event['Records']:
        try:
            job = json.loads(record['body'])
            notification_service.dispatch(job)
        except Exception as e:
            logger.error(f"CRITICAL: Failed to process message {record['messageId']}. Error: {e}")
            raise

    return {'statusCode': 200}
