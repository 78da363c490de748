"""
Command-line entrypoint.

    python main.py vet <token_id> [--force]   run checks once, print the envelope JSON
    python main.py serve [--host H] [--port P] run the API (uvicorn)

Config comes from the environment / .env (see backend_vetting.config).
API only: uvicorn backend_vetting.api_server.app:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import argparse
import json
import os
import sys

from backend_vetting.vetting_logging import get_logger

logger = get_logger("main")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Automated token vetting")
    sub = parser.add_subparsers(dest="command", required=True)

    vet = sub.add_parser("vet", help="Vet one token and print the result envelope")
    vet.add_argument("token_id", help="<address> or <chain>:<address>")
    vet.add_argument("--force", action="store_true", help="Ignore a fresh stored verdict")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=os.getenv("API_HOST", "0.0.0.0").strip())
    serve.add_argument("--port", type=int, default=int(os.getenv("API_PORT", "8000").strip() or "8000"))
    return parser


def cmd_vet(token_id: str, force: bool) -> int:
    from backend_vetting.config import get_settings
    from backend_vetting.vetting.service import VettingService

    service = VettingService.from_settings(get_settings())
    try:
        envelope = service.run_automated_checks(token_id, force_refresh=force)
    finally:
        service.close()
    print(json.dumps(envelope.to_dict(), indent=2, sort_keys=True))
    return 0 if envelope.success else 1


def cmd_serve(host: str, port: int) -> int:
    import uvicorn

    from backend_vetting.api_server.app import app

    logger.info("main_server_starting", host=host, port=port)
    uvicorn.run(app, host=host, port=port, log_level=os.getenv("LOG_LEVEL", "info").lower())
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.command == "vet":
        return cmd_vet(args.token_id, args.force)
    return cmd_serve(args.host, args.port)


if __name__ == "__main__":
    sys.exit(main())
