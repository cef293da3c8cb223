import argparse
import logging
import random
import sys
from pathlib import Path

from api.utils import json_dump, read_json_file
from core.logging_setup import setup_console_logging
from engine.delivery import DeliverySelector
from engine.errors import AssessmentError
from engine.models import OPTIONS_PER_QUESTION
from serialization import parse_test_definition, serialize_delivered_question

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect assessment test files")
    subparsers = parser.add_subparsers(dest="command", required=True)

    deliver = subparsers.add_parser("deliver", help="Preview one delivered question set")
    deliver.add_argument("file", type=Path, help="Path to test.json")
    deliver.add_argument("--seed", type=int, default=None, help="Random seed")
    deliver.add_argument(
        "--show-answers",
        action="store_true",
        help="Include the correct option index of each question",
    )

    validate = subparsers.add_parser("validate", help="Report authoring problems")
    validate.add_argument("file", type=Path, help="Path to test.json")
    return parser.parse_args(argv)


def _load_payload(path: Path) -> dict[str, object]:
    payload = read_json_file(path, None)
    if not isinstance(payload, dict):
        raise SystemExit(f"{path}: not a test payload")
    payload.setdefault("id", path.parent.name or path.stem)
    return payload


def find_problems(payload: dict[str, object]) -> tuple[list[str], list[str]]:
    """Return (errors, warnings) found in a raw test payload."""
    errors: list[str] = []
    warnings: list[str] = []

    for key in ("questionBank", "questions"):
        items = payload.get(key) or []
        if not isinstance(items, list):
            errors.append(f"{key} must be a list")
            continue
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                warnings.append(f"{key}[{index}] is not an object and is ignored")
                continue
            label = f"{key}[{index}] (id={item.get('id', index)})"
            options = item.get("options") or []
            if len(options) != OPTIONS_PER_QUESTION:
                warnings.append(
                    f"{label} has {len(options)} options; it is delivered without shuffling"
                )
            correct = item.get("correctOptionIndex", item.get("correctAnswer"))
            if not isinstance(correct, int) or isinstance(correct, bool):
                errors.append(f"{label} has no correct option index")
            elif not 0 <= correct < len(options):
                errors.append(f"{label} correct option index {correct} is out of range")

    if errors:
        return errors, warnings

    test = parse_test_definition(payload)
    bank_ids = {question.id for question in test.question_bank}
    for question_id in test.approved_question_ids:
        if question_id not in bank_ids:
            warnings.append(f"approved question {question_id} is not in the question bank")
    if not test.eligible_pool():
        errors.append("no questions are eligible for delivery")
    elif test.questions_to_show and test.questions_to_show > len(test.eligible_pool()):
        warnings.append(
            f"questionsToShow={test.questions_to_show} exceeds the "
            f"{len(test.eligible_pool())} eligible questions"
        )
    return errors, warnings


def run_deliver(args: argparse.Namespace) -> int:
    test = parse_test_definition(_load_payload(args.file))
    rng = random.Random(args.seed) if args.seed is not None else None
    try:
        delivered = DeliverySelector(rng).select(test)
    except AssessmentError as exc:
        logger.error(str(exc))
        return 1

    items = []
    for position, question in enumerate(delivered):
        item = serialize_delivered_question(question)
        item["position"] = position
        if not args.show_answers:
            item.pop("correctOptionIndex")
        items.append(item)
    print(json_dump({"testId": test.id, "questions": items}))
    return 0


def run_validate(args: argparse.Namespace) -> int:
    errors, warnings = find_problems(_load_payload(args.file))
    for message in warnings:
        print(f"warning: {message}")
    for message in errors:
        print(f"error: {message}")
    if not errors:
        print(f"{args.file}: OK")
    return 1 if errors else 0


def main(argv: list[str] | None = None) -> int:
    setup_console_logging(logging.WARNING)
    args = parse_args(argv)
    if args.command == "deliver":
        return run_deliver(args)
    return run_validate(args)


if __name__ == "__main__":
    sys.exit(main())
