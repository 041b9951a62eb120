# Copyright (c) 2026 Alessandro Orrù
# Licensed under MIT

import asyncio
import logging
import sys
from pathlib import Path
from typing import TextIO
from switchboard.config import AppConfig
from switchboard.dispatcher import Dispatcher
from switchboard.messages import msg
from switchboard.metrics import DispatchMetrics
from switchboard.registry import CommandRegistry

logger = logging.getLogger("switchboard.main")


# Read messages line by line and print the resolved command with its reply
async def run_console(dispatcher: Dispatcher, stream: TextIO = sys.stdin, out: TextIO = sys.stdout) -> int:
    loop = asyncio.get_running_loop()
    is_first_message = True
    handled = 0

    while True:
        out.write(msg("console.prompt"))
        out.flush()
        line = await loop.run_in_executor(None, stream.readline)
        if not line:
            break
        text = line.strip()
        if not text:
            continue

        result = await dispatcher.dispatch(text, is_first_message=is_first_message)
        is_first_message = False
        handled += 1

        if result.matched:
            print(msg("console.result", command=result.command, text=result.text), file=out)
        else:
            print(msg("console.no_match"), file=out)
        if result.end_session:
            break

    return handled


def setup_logging(config: AppConfig) -> None:
    logging.basicConfig(
        level=getattr(logging, config.logging.level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def main() -> None:
    config_path = Path("config.yaml")
    if len(sys.argv) > 1:
        config_path = Path(sys.argv[1])

    config = AppConfig.from_yaml(config_path)
    setup_logging(config)

    metrics = DispatchMetrics()
    registry = CommandRegistry.from_config(config, metrics)
    dispatcher = Dispatcher(registry, config.dialog, metrics)
    logger.info("Registry ready: %s", registry.stats())

    try:
        asyncio.run(run_console(dispatcher))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        registry.clear_commands()
        metrics.log_summary()
        logger.info("Console stopped")


# Explicit instance
if __name__ == "__main__":
    main()
