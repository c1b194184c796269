"""AWS Lambda handler for the Architect API."""

from typing import Any

from loguru import logger
from mangum import Mangum

from .api import app

# Mangum runs startup and shutdown around every invocation, so only a
# sqlite database_url (e.g. under /tmp) keeps data between requests
handler = Mangum(app, lifespan="auto")


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """AWS Lambda entry point.

    Args:
        event: API Gateway or function URL event.
        context: Lambda context object with runtime information.

    Returns:
        Response dictionary with statusCode, headers, and body.
    """
    logger.info(
        "Lambda request",
        path=event.get("rawPath") or event.get("path"),
        request_id=getattr(context, "aws_request_id", None),
    )
    response = handler(event, context)
    logger.info("Lambda response status: {}", response.get("statusCode"))

    return response  # type: ignore[no-any-return]
