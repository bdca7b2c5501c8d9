from typing import Optional
import logging

from fastapi import APIRouter, Request, Header
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.requests import ClientDisconnect

from harpoon.core.config import HarpoonConfig
from harpoon.core.security import compute_signature, split_signature, verify_signature
from harpoon.services.dispatcher import CommandDispatcher
from harpoon.services.event_handler import handle_event
from harpoon.services.matcher import PING_EVENT, resolve
from harpoon.services.payloads import decode_envelope

router = APIRouter()
logger = logging.getLogger(__name__)

BAD_REQUEST_MESSAGE = "I don't know what you're talking about"


def bad_request() -> JSONResponse:
    return JSONResponse(status_code=400, content={"message": BAD_REQUEST_MESSAGE})


def ok(status: str = "ok") -> JSONResponse:
    return JSONResponse(status_code=200, content={"status": status})


class WebhookIngress:
    """
    Verifies, decodes, matches and dispatches one webhook delivery.

    Built once at startup from read-only values; requests share it
    without locking.
    """

    def __init__(
        self,
        config: HarpoonConfig,
        secret: str,
        dispatcher: CommandDispatcher,
        verbose: bool = False,
    ):
        self.config = config
        self.secret = secret
        self.dispatcher = dispatcher
        self.verbose = verbose

    def _log_mismatch(self, body: bytes, signature: Optional[str]) -> None:
        parsed = split_signature(signature)
        algorithm, received = parsed if parsed else ("sha1", signature or "")
        expected = compute_signature(self.secret, body, algorithm)
        logger.warning(
            f"[webhook] Mismatch between expected ({expected}) and received ({received}) hash."
        )

    async def handle(self, event_type: Optional[str], signature: Optional[str], body: bytes) -> Response:
        if not verify_signature(self.secret, body, signature):
            self._log_mismatch(body, signature)
            return bad_request()

        event_type = event_type or ""
        if event_type == PING_EVENT:
            logger.info("[webhook] Ping received — responding pong")
            return ok("pong")

        envelope = decode_envelope(body)
        repository = envelope.repository.full_name

        rule = resolve(self.config.events, event_type, repository, envelope.ref)
        if rule is None:
            if self.verbose:
                logger.warning(f"[webhook] Discarding {event_type} on {repository} with ref {envelope.ref}.")
                return bad_request()
            return ok()

        await handle_event(event_type, envelope, body, rule, self.dispatcher)
        return ok()


@router.post("/")
async def github_webhook(
    request: Request,
    x_github_event: Optional[str] = Header(default=None, alias="X-GitHub-Event"),
    x_hub_signature: Optional[str] = Header(default=None, alias="X-Hub-Signature"),
    x_hub_signature_256: Optional[str] = Header(default=None, alias="X-Hub-Signature-256"),
):
    try:
        body = await request.body()
    except (ClientDisconnect, OSError) as e:
        logger.error(f"[webhook] Failed to read request body: {e}")
        return bad_request()

    logger.info(f"[webhook] Received event header: '{x_github_event}'")

    ingress: WebhookIngress = request.app.state.ingress
    return await ingress.handle(x_github_event, x_hub_signature_256 or x_hub_signature, body)


@router.get("/")
async def hey():
    return PlainTextResponse("Hey, what's up?")
