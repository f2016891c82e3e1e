# __main__.py
import argparse
import asyncio
import json
import logging
import sys

import uvicorn

from chatdigest.config_validator import ConfigValidator
from chatdigest.connectivity import check_connectivity
from chatdigest.context import RuntimeContext
from chatdigest.errors import ConfigError
from chatdigest.log_setup import configure_logging
from chatdigest.settings import Settings

logger = logging.getLogger("chatdigest")


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="chatdigest", description="Chat digest report server")
    parser.add_argument("--host", help="bind address (default: HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="listen port (default: PORT or 3000)")
    parser.add_argument(
        "--check",
        action="store_true",
        help="check RingCentral and Gemini connectivity, then exit",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    try:
        settings = Settings.from_env()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    configure_logging(settings.log_level, settings.logs_dir)

    validator = ConfigValidator()
    try:
        validator.validate_and_raise()
    except ConfigError as e:
        logger.error("Startup aborted: %s", e)
        return 1

    if args.check:
        results = asyncio.run(check_connectivity(settings))
        print(json.dumps(results, indent=2))
        return 0 if all(r["ok"] for r in results.values()) else 1

    # Imported late so --check does not pay for FastAPI startup
    from chatdigest.web import create_app

    app = create_app(settings, RuntimeContext(), validator)
    host = args.host or settings.host
    port = args.port or settings.port
    logger.info("starting server on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_config=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
