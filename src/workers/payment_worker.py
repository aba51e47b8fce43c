import logging

from core.config import get_settings
from core.dependencies import get_payment_service

# We need to configure logging here since workers are entry points
from core.logging_config import configure_logging
configure_logging(get_settings().LOG_LEVEL)

logger = logging.getLogger(__name__)


def lambda_handler(event, context):
    logger.info(f"Received {len(event['Records'])} payment events.")
    payment_service = get_payment_service()

    for record in event['Records']:
        event_body = record['body']
        try:
            payment_service.handle_payment_event(event_body)
        except Exception as e:
            logger.error(f"Error processing payment event {record.get('messageId')}: {e}")
            raise

    return {'statusCode': 200}
