import asyncio

import structlog

from pricestream.app import PriceStream
from pricestream.core.config import settings
from pricestream.core.logging import Logger
from pricestream.core.logging import configure as configure_logging

configure_logging()

logger: Logger = structlog.get_logger()


async def main() -> None:
    app = PriceStream(
        enable_http=settings.HTTP_ENABLED,
        http_port=settings.HTTP_PORT,
    )

    await app.run()

    await logger.ainfo("PriceStream finished")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
