"""LeadHub entrypoint."""

import uvicorn

from leadhub.config.settings import get_settings


def cli() -> None:
    """Serve the API with the host, port and log level from settings."""
    settings = get_settings()
    uvicorn.run(
        "leadhub.web.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=settings.debug,
    )


if __name__ == "__main__":
    cli()
