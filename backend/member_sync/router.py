"""
Member Sync - Skool Webhook Router

- POST    /api/webhooks/skool - Sync a Skool member into Firebase
- OPTIONS /api/webhooks/skool - CORS preflight (empty 200)
- any other method            - 405

No authentication: Skool's webhook integration cannot sign requests.
Every response carries permissive CORS headers.
"""

import json
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, Response

from sentry_integration import set_tag
from logging_config import bind_sync_context, clear_sync_context

from .errors import MissingEmailError
from .extractor import extract_member_event, parse_member_payload
from .dependencies import get_member_sync_service
from .models import iso_timestamp
from .service import MemberSyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Content-Type": "application/json",
}

# Every other verb is answered by method_not_allowed_response(), installed
# as the app's 405 handler for this path in server.py
ACCEPTED_METHODS = ["POST", "OPTIONS"]

SYNC_SUCCESS_MESSAGE = "Member successfully synced with Firebase"


def _json(status_code: int, content: dict) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=content, headers=CORS_HEADERS)


def method_not_allowed_response() -> JSONResponse:
    return _json(status.HTTP_405_METHOD_NOT_ALLOWED, {
        "error": "Method not allowed. Use POST.",
        "timestamp": iso_timestamp(),
    })


@router.api_route("/skool", methods=ACCEPTED_METHODS)
async def skool_webhook(
    request: Request,
    service: MemberSyncService = Depends(get_member_sync_service)
):
    """
    Receive a Skool member-join event.

    **Body:** JSON object with the member email under `email`, `Email`,
    `member_email` or `user_email`; optional `name`/`full_name`,
    `id`/`user_id`/`member_id` and `isPaid`.

    **Returns:**
    - 200 with `userId` (profile id), `authUserId` and `action` (created/updated)
    - 400 when no email is present
    - 500 when the body is malformed or Firebase sync fails
    """
    logger.info(f"Skool webhook called: {request.method}")
    set_tag("webhook", "skool")

    if request.method == "OPTIONS":
        return Response(status_code=status.HTTP_200_OK, content=b"", headers=CORS_HEADERS)

    try:
        body = await request.body()
        logger.debug(f"Headers: {json.dumps(dict(request.headers))}")
        logger.debug(f"Body: {body!r}")

        member_data = parse_member_payload(body)
        logger.info(f"Available fields: {list(member_data.keys())}")

        try:
            event = extract_member_event(member_data)
        except MissingEmailError as e:
            logger.warning(f"Skool webhook rejected: {e}")
            return _json(status.HTTP_400_BAD_REQUEST, {
                "success": False,
                "error": str(e),
                "received_data": member_data,
                "available_fields": e.available_fields,
                "timestamp": iso_timestamp(),
            })

        bind_sync_context(member_email=event.email)
        result = await service.reconcile(event)

        if result.success:
            logger.info("Skool member sync succeeded")
            return _json(status.HTTP_200_OK, {
                "success": True,
                "message": SYNC_SUCCESS_MESSAGE,
                "timestamp": iso_timestamp(),
                "userId": result.profile_id,
                "authUserId": result.identity_id,
                "action": result.action.value,
            })

        logger.error(f"Skool member sync failed: {result.error}")
        return _json(status.HTTP_500_INTERNAL_SERVER_ERROR, {
            "success": False,
            "error": f"Firebase sync failed: {result.error}",
            "timestamp": iso_timestamp(),
        })

    except Exception as e:
        logger.error(f"Error processing Skool webhook: {e}")
        return _json(status.HTTP_500_INTERNAL_SERVER_ERROR, {
            "success": False,
            "error": f"Internal server error: {e}",
            "timestamp": iso_timestamp(),
        })
    finally:
        clear_sync_context()
