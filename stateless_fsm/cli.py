#!/usr/bin/env python3
"""
Command-line interface for inspecting state machine definitions
"""

import argparse
import logging
import sys
from pathlib import Path

from .context import Message
from .errors import StateMachineError
from .parser import DefinitionParser, PermissiveRegistry


def _load(path: Path):
    return DefinitionParser.from_file(path, PermissiveRegistry(), register=False)


def cmd_verify(args) -> int:
    machine = _load(args.file)
    print("true" if machine.verify(args.state, args.event) else "false")
    return 0


def cmd_fire(args) -> int:
    machine = _load(args.file)
    print(machine.fire_event(args.state, Message(payload=args.event)))
    return 0


def cmd_plantuml(args) -> int:
    machine = _load(args.file)
    diagram = machine.visualize()
    if args.output:
        args.output.write_text(diagram + "\n")
        logging.getLogger(__name__).info(f"Diagram written to {args.output}")
    else:
        print(diagram)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sm-tool",
        description="Inspect and exercise YAML state machine definitions"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    verify = subparsers.add_parser("verify", help="Check whether an event is registered for a state")
    verify.add_argument("file", type=Path, help="Definition YAML file")
    verify.add_argument("state", help="Source state")
    verify.add_argument("event", help="Event")
    verify.set_defaults(func=cmd_verify)

    fire = subparsers.add_parser("fire", help="Fire an event and print the resulting state")
    fire.add_argument("file", type=Path, help="Definition YAML file")
    fire.add_argument("state", help="Source state")
    fire.add_argument("event", help="Event")
    fire.set_defaults(func=cmd_fire)

    plantuml = subparsers.add_parser("plantuml", help="Render the machine as PlantUML")
    plantuml.add_argument("file", type=Path, help="Definition YAML file")
    plantuml.add_argument("-o", "--output", type=Path, help="Output file (default: stdout)")
    plantuml.set_defaults(func=cmd_plantuml)

    return parser


def main(argv=None) -> int:
    """Main CLI entry point"""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        return args.func(args)
    except StateMachineError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
