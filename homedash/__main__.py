"""Run the console with uvicorn: ``python -m homedash``."""

import uvicorn

from homedash.core.config import ConfigService


def main() -> None:
    server_config = ConfigService().load().server
    uvicorn.run("homedash.main:app", host=server_config.host, port=server_config.port)


if __name__ == "__main__":
    main()
