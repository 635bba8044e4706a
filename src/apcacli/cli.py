"""Command line entry point.

Usage:
    apcacli account get
    apcacli -vv order list --closed
    apcacli events trades --json
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

from apcacli.args import parse_args
from apcacli.client import BrokerClient
from apcacli.commands import dispatch
from apcacli.config import ApiConfig
from apcacli.errors import ApcaCliError
from apcacli.formatting import Style
from apcacli.logging_config import LoggingConfig, configure_logging, level_for_verbosity
from apcacli.streaming import relay_events, relay_updates

logger = logging.getLogger("apcacli")


def run(argv: Optional[list[str]] = None, out: Optional[TextIO] = None) -> int:
    """Parse ``argv``, execute the command and print its output.

    Raises:
        ApcaCliError: If the command fails.
    """
    out = out or sys.stdout
    args = parse_args(argv)

    configure_logging(LoggingConfig(
        level=level_for_verbosity(args.verbosity),
        verbose_libraries=args.verbosity >= 3,
    ))

    config = ApiConfig.from_env()

    if args.command == "events":
        return relay_events(config, args.event, json_output=args.json, out=out)
    if args.command == "updates":
        return relay_updates(config, args.update, args.symbols, json_output=args.json, out=out)

    client = BrokerClient(config)
    output = dispatch(client, args, Style.for_stream(out))
    if output:
        out.write(output + "\n")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    try:
        return run(argv)
    except ApcaCliError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130
    finally:
        sys.stdout.flush()


if __name__ == "__main__":
    sys.exit(main())
