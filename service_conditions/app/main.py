"""
Command line entry point for checking stored rule conditions.

    python -m service_conditions.app.main evaluate conditions.json subject.json
    python -m service_conditions.app.main convert conditions.xml --to json
    python -m service_conditions.app.main describe conditions.json
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from shared.config import get_config
from shared.errors import DeserializationError
from shared.logging import configure_logging, get_logger
from .conditions.codec import TreeCodec
from .conditions.describe import describe
from .conditions.registry import NodeTypeRegistry, default_registry
from .consumers import cart_registry, segment_registry
from .rule import DeserializationPolicy, Rule

REGISTRIES = {
    "default": default_registry,
    "cart": cart_registry,
    "segment": segment_registry,
}


def _registry(name: str) -> NodeTypeRegistry:
    return REGISTRIES[name]()


def cmd_evaluate(args: argparse.Namespace) -> int:
    rule = Rule(
        rule_id=args.rule_id,
        name=Path(args.conditions).name,
        conditions_serialized=Path(args.conditions).read_text(),
        registry=_registry(args.registry),
        policy=DeserializationPolicy(args.on_error)
    )
    subject = json.loads(Path(args.subject).read_text())

    result = rule.evaluate(subject)
    print(json.dumps({
        "rule_id": rule.rule_id,
        "matched": result.matched,
        "deserialization_failed": result.deserialization_failed,
        "evaluation_time_ms": round(result.evaluation_time_ms, 3),
        "diagnostics": [d.to_response().model_dump() for d in result.diagnostics],
    }, indent=2))
    return 0 if not result.errors else 2


def cmd_convert(args: argparse.Namespace) -> int:
    codec = TreeCodec(_registry(args.registry))
    root = codec.decode(Path(args.conditions).read_text())
    print(codec.encode(root, args.to))
    return 0


def cmd_describe(args: argparse.Namespace) -> int:
    codec = TreeCodec(_registry(args.registry))
    print(describe(codec.decode(Path(args.conditions).read_text())))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect and evaluate stored rule conditions")
    parser.add_argument("--registry", choices=sorted(REGISTRIES), default="default", help="Node type registry")
    subparsers = parser.add_subparsers(dest="command", required=True)

    evaluate_parser = subparsers.add_parser("evaluate", help="Evaluate conditions against a JSON subject")
    evaluate_parser.add_argument("conditions", help="File holding the stored conditions (JSON or XML)")
    evaluate_parser.add_argument("subject", help="JSON file with the subject's attributes and items")
    evaluate_parser.add_argument("--rule-id", default="cli", help="Rule ID used in logs")
    evaluate_parser.add_argument(
        "--on-error",
        choices=[p.value for p in DeserializationPolicy],
        default=DeserializationPolicy.RAISE.value,
        help="Answer when the conditions cannot be decoded"
    )
    evaluate_parser.set_defaults(func=cmd_evaluate)

    convert_parser = subparsers.add_parser("convert", help="Re-encode conditions as JSON or XML")
    convert_parser.add_argument("conditions", help="File holding the stored conditions (JSON or XML)")
    convert_parser.add_argument("--to", choices=["json", "xml"], default=None, help="Target format")
    convert_parser.set_defaults(func=cmd_convert)

    describe_parser = subparsers.add_parser("describe", help="Print conditions as text")
    describe_parser.add_argument("conditions", help="File holding the stored conditions (JSON or XML)")
    describe_parser.set_defaults(func=cmd_describe)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    config = get_config()
    configure_logging("conditions", config.log_level, stream=sys.stderr)
    logger = get_logger("conditions.cli")

    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except DeserializationError as e:
        logger.error("Could not decode conditions", error=e.message, details=e.details)
        print(f"Invalid conditions: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
