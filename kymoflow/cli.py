# kymoflow/cli.py
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from .config import default_configuration, load_configuration, write_configuration
from .errors import KymoflowError
from .io import FlowPipeline, LoggingReporter


logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    """
    CLI parser for the flow pipeline.

    Only parsing and option descriptions; no business logic.
    """
    parser = argparse.ArgumentParser(
        prog="kymoflow",
        description=(
            "Estimate blood flow velocity per vessel segment and interval from kymographs "
            "and render the result as a colour/arrow-coded spatial map."
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="More log output (-v: progress per unit, -vv: debug).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("analyze", "Build kymographs and write velocity/angle/fit matrices."),
        ("render", "Render the persisted velocity matrix as spatial map TIFF."),
        ("run", "analyze followed by render."),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("config", help="Configuration file (key,value,description lines).")
        cmd.add_argument(
            "--jobs",
            type=int,
            default=None,
            help="Override n_jobs from the configuration (1 = sequential, -1 = all cores).",
        )

    init = sub.add_parser("init-config", help="Write a configuration template with all keys.")
    init.add_argument("path", help="Where to write the template.")
    return parser


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        if args.command == "init-config":
            path = write_configuration(default_configuration(), args.path)
            print(f"Configuration template written to {path}")
            return 0

        config = load_configuration(args.config)
        if args.jobs is not None:
            config = config.replace(n_jobs=args.jobs)
        pipeline = FlowPipeline(config)
        pipeline.register_observer(LoggingReporter())

        if args.command == "analyze":
            written = pipeline.analyze().written
        elif args.command == "render":
            written = pipeline.render()
        else:
            written = pipeline.run()
    except KymoflowError as exc:
        logger.debug("Run aborted", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    for label, path in written.items():
        print(f"{label}: {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
