"""Command that starts the targeting engine."""

from __future__ import annotations

import argparse
import dataclasses
import logging
from collections.abc import Sequence

from .config import load_settings
from .metrics import init_metrics
from .web import create_app

log = logging.getLogger(__name__)


def _register_metrics() -> None:
    try:
        init_metrics()
    except ValueError as exc:
        log.info("Metrics already registered: %s", exc)


def main(argv: Sequence[str] | None = None) -> int:
    """Register metrics and serve the HTTP API until interrupted."""
    parser = argparse.ArgumentParser(
        prog="targeting-engine", description="Serve campaign delivery requests."
    )
    parser.add_argument("--listen", help="address to listen on, such as :8080")
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
        if args.listen:
            settings = dataclasses.replace(settings, server_port=args.listen)
    except ValueError as exc:
        parser.error(str(exc))

    logging.basicConfig(level=logging.INFO)
    _register_metrics()
    app = create_app(settings)
    log.info("Serving delivery routes under basepath %s", settings.basepath)
    app.run(host=settings.host or "0.0.0.0", port=settings.port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())