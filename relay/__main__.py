import argparse
import asyncio
import logging

from .server import RelayServer

logging.basicConfig(level=logging.INFO)


def main() -> None:
    parser = argparse.ArgumentParser(description="Kings Corner game relay")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8765)
    args = parser.parse_args()

    server = RelayServer()
    asyncio.run(server.start(host=args.host, port=args.port))


if __name__ == "__main__":
    main()
