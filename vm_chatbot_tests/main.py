"""Main entry point for the chat widget tests - CLI."""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Tuple

from vm_chatbot_tests.config import get_settings, load_settings_from_json
from vm_chatbot_tests.test_data import TestDataManager
from vm_chatbot_tests import console

MIN_RESPONSE_TIMEOUT = 10000


def load_config(args) -> bool:
    """Load config from specified path or default config.json."""
    config_path = Path(args.config) if args.config else Path("config.json")

    if not config_path.exists():
        if args.config:
            console.log(f"{console.error('Error:')} Config file not found: {config_path}")
            return False
        return True

    try:
        load_settings_from_json(config_path)
        console.log(f"Loaded config from: {config_path}")
        return True
    except (json.JSONDecodeError, ValueError) as e:
        console.log(f"{console.error('Error:')} Invalid config file: {e}")
        return False


def validate_fixtures(settings) -> Tuple[dict, List[str], List[str]]:
    """Check conversation and scenario fixtures.

    Returns:
        (counts, problems, warnings): problems make the fixtures unusable,
        warnings point at settings that are probably wrong
    """
    manager = TestDataManager(settings.fixtures_path)
    counts = {"conversations": 0, "scenarios": 0}
    problems: List[str] = []
    warnings: List[str] = []

    try:
        conversations = manager.load_conversations(settings.conversations_file)
        counts["conversations"] = len(conversations)
        seen = set()
        for conversation in conversations:
            if conversation.name in seen:
                problems.append(f"Duplicate conversation name: {conversation.name}")
            seen.add(conversation.name)
            if all(turn.sender == "me" for turn in conversation.convo):
                warnings.append(f"Conversation '{conversation.name}' has no bot turns to check")
    except (OSError, json.JSONDecodeError, ValueError) as e:
        problems.append(f"{settings.conversations_file}: {e}")

    try:
        counts["scenarios"] = len(manager.load_scenarios(settings.scenarios_file))
    except (OSError, ValueError) as e:
        problems.append(f"{settings.scenarios_file}: {e}")

    if settings.response_timeout < MIN_RESPONSE_TIMEOUT:
        warnings.append(f"RESPONSE_TIMEOUT of {settings.response_timeout}ms might be too short for bot replies")

    return counts, problems, warnings


def _print_run_header(settings, args, markers, output_path):
    """Print test run configuration header."""
    headless = settings.headless and not args.headed
    console.log("Running chat widget tests...")
    console.log(f"  Headless: {headless}")
    console.log(f"  Browser: {settings.browser}")
    console.log(f"  Chat URL: {settings.chatbot_url}")
    console.log(f"  Widget: {settings.widget}")
    console.log(f"  Markers: {markers or 'all'}")
    if args.limit:
        console.log(f"  Limit: {args.limit} cases per data-driven suite")
    console.log(f"  Output: {output_path}")
    console.log("")


def _print_run_summary(result):
    """Print test run summary with colors."""
    line = console.dim("=" * 50)
    console.log(f"\n{line}")
    console.log(f"Test Run Complete: {console.info(result.test_id[:8])}")

    status = console.success("COMPLETED") if result.status.value == "completed" else console.error("FAILED")
    console.log(f"Status: {status}")
    console.log(f"Duration: {console.dim(f'{result.duration_seconds:.2f}s')}")

    passed = console.success(str(result.passed))
    failed = console.error(str(result.failed)) if result.failed else "0"
    skipped = str(result.skipped)
    console.log(f"Passed: {passed}, Failed: {failed}, Skipped: {skipped}, Total: {result.total}")

    console.log(f"Output: {console.dim(result.output_file)}")
    console.log(f"Summary: {console.dim(result.summary_file)}")
    console.log(line)


def cli_run(args):
    """Run tests via CLI."""
    from vm_chatbot_tests.runner import run_tests_sync
    from vm_chatbot_tests.output import generate_output_filename

    if not load_config(args):
        return 1

    if args.color:
        console.force_color(True)

    markers = args.marker.split(",") if args.marker else None
    settings = get_settings()

    if args.output:
        output_path = Path(args.output)
        if output_path.is_dir():
            output_path = output_path / generate_output_filename()
    else:
        output_path = settings.reports_path / generate_output_filename()

    _print_run_header(settings, args, markers, output_path)

    headless = settings.headless and not args.headed

    result = run_tests_sync(
        markers=markers,
        headless=headless,
        output_path=output_path,
        limit=args.limit,
    )

    _print_run_summary(result)
    return 0 if result.status.value == "completed" else 1


def cli_validate(args):
    """Validate configuration and fixtures without starting a browser."""
    if not load_config(args):
        return 1

    if args.color:
        console.force_color(True)

    settings = get_settings()
    console.log(console.label("Configuration"))
    console.log(f"  Chat URL: {settings.chatbot_url}")
    console.log(f"  Widget: {settings.widget}")
    console.log(f"  Browser: {settings.browser} (headless: {settings.headless})")
    console.log(f"  Response timeout: {settings.response_timeout}ms, poll interval: {settings.poll_interval}ms")
    console.log(f"  Retries: {settings.max_retries} x {settings.retry_delay}ms ({settings.retry_backoff})")
    console.log(f"  Fixtures: {settings.fixtures_path}")

    counts, problems, warnings = validate_fixtures(settings)
    console.log(console.label("\nFixtures"))
    console.log(f"  Conversations: {counts['conversations']}")
    console.log(f"  Scenarios: {counts['scenarios']}")

    for warning in warnings:
        console.log(f"  {console.warn('Warning:')} {warning}")
    for problem in problems:
        console.log(f"  {console.error('Error:')} {problem}")

    if problems:
        return 1
    console.log(console.success("\nConfiguration is valid"))
    return 0


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Virgin Media chat widget browser tests",
        prog="vm-chatbot-tests",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run tests")
    run_parser.add_argument("-c", "--config", help="Path to JSON config file")
    run_parser.add_argument("-m", "--marker", help="Comma-separated test markers")
    run_parser.add_argument("--headed", action="store_true", help="Show browser (overrides config)")
    run_parser.add_argument("-o", "--output", help="Output file/directory")
    run_parser.add_argument("--color", action="store_true", help="Force colors")
    run_parser.add_argument("--limit", type=int, help="Limit to first N conversations/scenarios")
    run_parser.set_defaults(func=cli_run)

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Check config and fixtures")
    validate_parser.add_argument("-c", "--config", help="Path to JSON config file")
    validate_parser.add_argument("--color", action="store_true", help="Force colors")
    validate_parser.set_defaults(func=cli_validate)

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
