import logging
import os
from collections.abc import Mapping
from contextlib import AsyncExitStack

import anyio

from bucketbind import config
from bucketbind.api import make_app
from bucketbind.binding import Binding

ENV_PREFIX = "BUCKETBIND_"
ENV_PROPERTIES = {
    f"{ENV_PREFIX}ENDPOINT": config.ENDPOINT,
    f"{ENV_PREFIX}ACCESS_KEY": config.ACCESS_KEY,
    f"{ENV_PREFIX}SECRET_KEY": config.SECRET_KEY,
    f"{ENV_PREFIX}BUCKET": config.BUCKET,
    f"{ENV_PREFIX}REGION": config.REGION,
    f"{ENV_PREFIX}SSL": config.SSL,
}


def properties_from_env(environ: Mapping[str, str]) -> dict[str, str]:
    return {prop: environ[name] for name, prop in ENV_PROPERTIES.items() if name in environ}


async def main() -> None:
    import uvicorn

    logging.basicConfig(
        level=os.environ.get(f"{ENV_PREFIX}LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    async with AsyncExitStack() as stack:
        binding = await stack.enter_async_context(
            Binding.connect(properties_from_env(os.environ))
        )
        app = make_app(binding)

        server_config = uvicorn.Config(
            app,
            host=os.environ.get(f"{ENV_PREFIX}HOST", "0.0.0.0"),
            port=int(os.environ.get(f"{ENV_PREFIX}PORT", "8000")),
        )
        server = uvicorn.Server(server_config)
        await server.serve()


if __name__ == "__main__":
    anyio.run(main)
