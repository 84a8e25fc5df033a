"""CLI entrypoint for running the API server."""
from __future__ import annotations

import argparse
import os

from config import DEBUG, PORT

from . import create_app


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the generation job gateway")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=PORT, help=f"Port to bind (default: {PORT})")
    parser.add_argument("--debug", action="store_true", default=DEBUG, help="Enable Flask debug mode")
    args = parser.parse_args()

    app = create_app()

    if not args.debug or os.environ.get("WERKZEUG_RUN_MAIN") == "true":
        print(f"API server listening on http://{args.host}:{args.port}", flush=True)

    try:
        app.run(host=args.host, port=args.port, debug=args.debug, threaded=True)
    finally:
        app.extensions["job_service"].dispatcher.stop()


if __name__ == "__main__":  # pragma: no cover
    main()
