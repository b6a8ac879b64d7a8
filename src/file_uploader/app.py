"""
The Lambda Adapter for the File Uploader service.

This module is the main entry point for the AWS Lambda function. It is
responsible for:
1.  Initializing and configuring AWS Lambda Powertools (Logger, Tracer and
    Metrics).
2.  Building the process-wide collaborators once per container: the S3 and
    Slack clients, the Event Admission Ledger and the upload limiter.
3.  Verifying and parsing Slack Events API callbacks and answering the
    `url_verification` handshake.
4.  Handing `file_shared` events to `handle_file_upload_event`.
5.  Serving the single-URL ingestion endpoint (`POST /upload`).

A single asyncio event loop lives for the whole container, so the ledger,
limiter and HTTP session survive between invocations.
"""

import asyncio
import base64
import json
from typing import Any

import aiohttp
import boto3
import pydantic
from aws_lambda_powertools import Logger, Metrics, Tracer
from aws_lambda_powertools.logging.utils import copy_config_to_registered_loggers
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.typing import LambdaContext

from .clients import ObjectStorage, RemoteFileSource, S3Client
from .config import get_config
from .core import UploadServices
from .exceptions import SignatureVerificationError, get_error_context
from .ledger import EventAdmissionLedger
from .limiter import initialize_upload_limiter
from .pipeline import handle_file_upload_event
from .remote_upload import handle_upload_request
from .schemas import FileSharedEvent, SlackEventEnvelope
from .security import verify_slack_signature
from .slack import SlackClient

# --- Global & Reusable Components ---
CONFIG = get_config()

logger = Logger(service=CONFIG.service_name, level=CONFIG.log_level)
tracer = Tracer(service=CONFIG.service_name)
metrics = Metrics(
    namespace="FileUploader",
    service=CONFIG.service_name,
)

# Module loggers (file_uploader.*) propagate to the package logger, which gets
# the same structured handler as the Powertools logger.
copy_config_to_registered_loggers(source_logger=logger, include={"file_uploader"})

s3_boto_client = boto3.client("s3")
s3_client = S3Client(s3_client=s3_boto_client, kms_key_id=CONFIG.storage_kms_key_id)
storage = ObjectStorage(s3_client, CONFIG.storage_bucket, CONFIG.public_base_url)

ledger = EventAdmissionLedger()
upload_limiter = initialize_upload_limiter(CONFIG.concurrent_uploads)

_loop = asyncio.new_event_loop()
_services: UploadServices | None = None


async def _get_services() -> UploadServices:
    """Builds the services on first use; the HTTP session must be created on the loop."""
    global _services
    if _services is None:
        session = aiohttp.ClientSession()
        _services = UploadServices(
            slack=SlackClient(session, CONFIG.slack_bot_token, CONFIG.slack_api_base_url),
            storage=storage,
            source=RemoteFileSource(session),
            ledger=ledger,
            bot_token=CONFIG.slack_bot_token,
            max_file_size_bytes=CONFIG.max_file_size_bytes,
            limiter=upload_limiter,
        )
    return _services


def _response(status_code: int, body: dict[str, Any]) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }


def _request_body(event: dict) -> str:
    body = event.get("body") or ""
    if event.get("isBase64Encoded"):
        body = base64.b64decode(body).decode("utf-8")
    return body


def _lowercase_headers(event: dict) -> dict[str, str]:
    return {k.lower(): v for k, v in (event.get("headers") or {}).items()}


async def _handle_slack_callback(body: str, headers: dict[str, str]) -> dict[str, Any]:
    if CONFIG.slack_signing_secret:
        try:
            verify_slack_signature(
                CONFIG.slack_signing_secret,
                headers.get("x-slack-request-timestamp"),
                body,
                headers.get("x-slack-signature"),
            )
        except SignatureVerificationError as e:
            metrics.add_metric(name="RejectedSlackRequests", unit=MetricUnit.Count, value=1)
            logger.warning(f"Rejected Slack request: {e}", extra=get_error_context(e))
            return _response(401, {"ok": False, "error": "invalid_signature"})

    try:
        envelope = SlackEventEnvelope.model_validate_json(body)
    except pydantic.ValidationError as e:
        logger.warning("Invalid Slack payload.", extra={"validation_errors": e.errors()})
        return _response(400, {"ok": False, "error": "invalid_payload"})

    if envelope.type == "url_verification":
        logger.info("Answering Slack url_verification handshake.")
        return _response(200, {"challenge": envelope.challenge})

    # The first delivery may still be running in another container whose
    # ledger this one cannot see.
    if headers.get("x-slack-retry-num"):
        metrics.add_metric(name="IgnoredSlackRetries", unit=MetricUnit.Count, value=1)
        logger.info(
            "Acknowledging Slack retry without processing.",
            extra={
                "event_id": envelope.event_id,
                "retry_num": headers.get("x-slack-retry-num"),
                "retry_reason": headers.get("x-slack-retry-reason"),
            },
        )
        return _response(200, {"ok": True})

    if envelope.type != "event_callback" or (envelope.event or {}).get("type") != "file_shared":
        logger.debug("Ignoring unsupported Slack event.", extra={"type": envelope.type})
        return _response(200, {"ok": True})

    try:
        event = FileSharedEvent.model_validate(envelope.event)
    except pydantic.ValidationError as e:
        logger.warning(
            "Invalid file_shared event.",
            extra={"event_id": envelope.event_id, "validation_errors": e.errors()},
        )
        return _response(200, {"ok": True})

    metrics.add_metric(name="FileSharedEvents", unit=MetricUnit.Count, value=1)
    logger.info(
        "Handling file_shared event",
        extra={
            "event_id": envelope.event_id,
            "file_id": event.file_id,
            "channel_id": event.channel_id,
        },
    )

    try:
        batch_result = await handle_file_upload_event(event, await _get_services())
    except Exception:
        metrics.add_metric(name="OrchestrationFaults", unit=MetricUnit.Count, value=1)
        logger.exception("A non-recoverable error occurred while uploading files.")
        return _response(500, {"ok": False, "error": "internal_error"})

    if batch_result is not None:
        metrics.add_metric(
            name="UploadedFiles", unit=MetricUnit.Count, value=len(batch_result.succeeded)
        )
        metrics.add_metric(
            name="FailedFiles", unit=MetricUnit.Count, value=len(batch_result.failed)
        )
    return _response(200, {"ok": True})


async def _route(event: dict) -> dict[str, Any]:
    path = event.get("path") or event.get("rawPath") or ""
    body = _request_body(event)
    headers = _lowercase_headers(event)

    if path.rstrip("/").endswith("/upload"):
        metrics.add_metric(name="RemoteUploadRequests", unit=MetricUnit.Count, value=1)
        status_code, response_body = await handle_upload_request(
            body, headers, await _get_services()
        )
        return _response(status_code, response_body)

    return await _handle_slack_callback(body, headers)


@logger.inject_lambda_context()
@tracer.capture_lambda_handler
@metrics.log_metrics(capture_cold_start_metric=True)
def handler(event: dict, context: LambdaContext) -> dict[str, Any]:
    """Main Lambda handler for API Gateway proxy events."""
    metrics.add_dimension("environment", CONFIG.environment)
    return _loop.run_until_complete(_route(event))
