"""
Entry point for running the voice bot as a module:
    python -m voicebot serve [--host HOST] [--port PORT]
    python -m voicebot chat [--api-url URL]
"""

import argparse
import asyncio
import logging

from .client.main import main as client_main
from .server.main import main as server_main


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="voicebot", description="Voice bot API server and client")
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="run the rate-limited answer API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    chat = sub.add_parser("chat", help="run a terminal voice session")
    chat.add_argument("--api-url", default=None)

    args = parser.parse_args(argv)
    if args.command is None:
        args = parser.parse_args(["serve"] + (argv or []))
    return args


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.command == "serve" else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    try:
        if args.command == "chat":
            asyncio.run(client_main(args.api_url))
        else:
            asyncio.run(server_main(args.host, args.port))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
