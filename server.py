"""
Development server for the conquest API.
Run: python server.py [--host HOST] [--port PORT] [--reload]
"""

import argparse

import uvicorn

from conquest.config import configure_logging

PORT = 8000


def main():
    parser = argparse.ArgumentParser(description="Run the conquest API server")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=PORT)
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    args = parser.parse_args()

    configure_logging()
    print(f"Serving API at http://{args.host}:{args.port} (docs at /docs)")
    uvicorn.run("conquest.api.main:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
