"""Command-line entry point: load config and secret, then serve webhooks."""

import logging
from pathlib import Path
from typing import Optional

import typer
import uvicorn

from harpoon.core.config import ConfigError, get_env, get_secret, load_config_with_fallback
from harpoon.main import configure_logging, create_app

logger = logging.getLogger(__name__)

cli = typer.Typer(help="Run local commands when GitHub webhooks arrive", add_completion=False)


@cli.command()
def serve(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log command output and discarded events"),
    verbose_tunnel: bool = typer.Option(False, "--verbose-tunnel", "--vt", help="Debug logging for the tunnel"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file to load other than ./config.toml"),
) -> None:
    """Start the webhook server."""
    configure_logging(get_env("HARPOON_LOG_LEVEL", "INFO"))
    if verbose_tunnel:
        logging.getLogger("harpoon.services.tunnel").setLevel(logging.DEBUG)

    try:
        settings = load_config_with_fallback(config)
    except ConfigError as e:
        logger.error(f"[cli] ❌ {e}")
        raise typer.Exit(code=1)

    app = create_app(settings, secret=get_secret(), verbose=verbose)
    uvicorn.run(app, host=settings.bind_host, port=settings.port)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
