import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import Optional

from fastapi import FastAPI

from harpoon.api.webhooks import WebhookIngress, router as webhook_router
from harpoon.core.config import HarpoonConfig
from harpoon.services.dispatcher import CommandDispatcher
from harpoon.services.tunnel import LocalTunnel

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def create_app(
    config: HarpoonConfig,
    secret: str,
    verbose: bool = False,
    dispatcher: Optional[CommandDispatcher] = None,
    tunnel: Optional[LocalTunnel] = None,
) -> FastAPI:
    if config.tunnel and tunnel is None:
        tunnel = LocalTunnel(config.tunnel_name)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"[startup] Listening on {config.address} with {len(config.events)} rule(s)")
        if not secret:
            logger.warning("[startup] ⚠️  GITHUB_HOOK_SECRET_TOKEN is not set — signature verification is DISABLED")

        tunnel_task = None
        if tunnel is not None:
            # TunnelError propagates and aborts startup
            url = await tunnel.open()
            logger.info(f"[startup] Tunnel URL: {url}")
            tunnel_task = asyncio.create_task(tunnel.serve(config.port))

        yield

        if tunnel_task is not None:
            tunnel_task.cancel()
            with suppress(asyncio.CancelledError):
                await tunnel_task

    app = FastAPI(title="harpoon", lifespan=lifespan)
    app.state.config = config
    app.state.ingress = WebhookIngress(
        config=config,
        secret=secret,
        dispatcher=dispatcher or CommandDispatcher(verbose=verbose),
        verbose=verbose,
    )
    app.include_router(webhook_router)
    return app
