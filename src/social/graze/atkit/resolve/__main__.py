from typing import List
import argparse
import asyncio
import logging

import aiohttp

from social.graze.atkit.cli import configure_logging
from social.graze.atkit.config import Settings
from social.graze.atkit.resolve.handle import resolve_subject

logger = logging.getLogger(__name__)


async def realMain() -> None:
    settings = Settings()

    parser = argparse.ArgumentParser(
        prog="atkit-resolve", description="Resolve handles and DIDs"
    )
    parser.add_argument("subject", nargs="+", help="The subject(s) to resolve.")
    parser.add_argument(
        "--plc-hostname",
        default=settings.plc_hostname,
        help="The PLC hostname to use for resolving did-method-plc DIDs.",
    )

    args = vars(parser.parse_args())

    subjects: List[str] = args.get("subject", [])

    async with aiohttp.ClientSession() as session:
        for subject in subjects:
            try:
                resolved = await resolve_subject(
                    session, args.get("plc_hostname"), subject
                )
            except (aiohttp.ClientError, asyncio.TimeoutError):
                logger.exception("Exception resolving subject %s", subject)
                continue
            if resolved is None:
                print(f"{subject}: not resolved")
            else:
                print(f"{subject}: {resolved.did} {resolved.handle} {resolved.pds}")


def main() -> None:
    configure_logging()
    asyncio.run(realMain())


if __name__ == "__main__":
    main()
