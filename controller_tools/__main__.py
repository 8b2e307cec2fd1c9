#!/usr/bin/env python3
"""Run the controller-tools service, or list controllers once."""

import argparse
import json
import sys

import uvicorn

import controller_tools.config as config
from controller_tools.controllers.enumerator import controllers


def print_controllers(as_json: bool = False) -> int:
    found = controllers()
    if as_json:
        print(json.dumps([c.model_dump(mode="json") for c in found], indent=2))
        return 0

    if not found:
        print("No controllers found.")
        return 0

    for c in found:
        print(f"  {c.name:<24} {c.connection.value:<17} {c.capacity:>3}%  {c.status.value:<13} {c.unique_id}")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="controller-tools", description=__doc__)
    parser.add_argument("--log-level", default=config.LOG_LEVEL)
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="run the HTTP/WebSocket service")
    serve.add_argument("--host", default=config.HOST)
    serve.add_argument("--port", type=int, default=config.PORT)

    list_cmd = sub.add_parser("list", help="print connected controllers and exit")
    list_cmd.add_argument("--json", action="store_true", help="print JSON instead of a table")

    args = parser.parse_args(argv)
    config.setup_logging(args.log_level.upper())

    if args.command == "list":
        return print_controllers(args.json)

    host = getattr(args, "host", config.HOST)
    port = getattr(args, "port", config.PORT)
    uvicorn.run("controller_tools.main:app", host=host, port=port, log_level=args.log_level.lower())
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nDone.")
