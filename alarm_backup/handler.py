# alarm_backup/handler.py
"""
AWS Lambda entry point.
One function serves both API Gateway proxy requests and SQS batch invocations;
the router tells them apart.
"""

from alarm_backup.factory import get_services
from alarm_backup.utils.logger import get_logger
from alarm_backup.utils.responses import ERROR_INTERNAL, error

logger = get_logger(__name__)


def lambda_handler(event, context=None) -> dict:
    request_id = getattr(context, "aws_request_id", "local")
    logger.info(f"[HANDLER] Invocation {request_id}")
    try:
        response = get_services().router.route(event)
    except Exception as e:
        logger.error(f"[HANDLER] Unhandled error in {request_id}: {e}", exc_info=True)
        response = error(500, ERROR_INTERNAL)
    return response.to_gateway()
