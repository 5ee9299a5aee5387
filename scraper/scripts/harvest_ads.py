#!/usr/bin/env python3
"""CLI shim for the advertiser creative harvester."""
from __future__ import annotations

import asyncio

from adharvest.harvest import CliArgs, get_scraper_version, parse_args, run
from adharvest.logging import configure_logging, logging_context, set_global_context

SCRIPT_NAME = "harvest"


def main() -> None:
    """Parse CLI arguments and execute the harvest pipeline."""
    configure_logging()
    set_global_context(app="adharvest", pipeline=SCRIPT_NAME)
    version = get_scraper_version()
    with logging_context(script=SCRIPT_NAME, scraper_version=version):
        args: CliArgs = parse_args()
        asyncio.run(run(args))


if __name__ == "__main__":
    main()
