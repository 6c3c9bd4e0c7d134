"""Run the gateway with uvicorn: ``python -m authgw``."""

import uvicorn

from authgw.core.app import create_app
from authgw.core.settings import AuthSettings


def main() -> None:
    settings = AuthSettings()
    uvicorn.run(
        create_app(),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        log_config=None,
    )


if __name__ == "__main__":
    main()
