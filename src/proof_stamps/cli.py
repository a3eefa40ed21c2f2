"""Command-line verification of issued credentials."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .credentials.verifier import verify_credential
from .logging_pipeline import (
    BoundedQueueHandler,
    configure_structured_logging,
    shutdown_listeners,
)
from .signing.local import LocalSigningBackend


def _read_stdin() -> str | None:
    """Read the credential from stdin if something was piped in."""
    try:
        if sys.stdin and not sys.stdin.isatty():
            return sys.stdin.read()
    except OSError as e:
        print(f"Error reading stdin: {e}", file=sys.stderr)
    return None


def _load_credential(path: str | None, stdin_payload: str | None) -> dict[str, object]:
    """Load the credential JSON from file or stdin."""
    if path:
        return _parse_json_dict(Path(path).read_text(encoding="utf-8"))
    if stdin_payload:
        return _parse_json_dict(stdin_payload)
    raise ValueError("No input provided. Use --input or pipe JSON via stdin.")


def _parse_json_dict(payload: str) -> dict[str, object]:
    data = json.loads(payload)
    if not isinstance(data, dict):
        raise ValueError("Input JSON must be an object at the top level.")
    # Accept a full issuer response as well as a bare credential
    inner = data.get("credential")
    if isinstance(inner, dict):
        data = inner
    return {str(key): value for key, value in data.items()}


def main(argv: list[str] | None = None) -> int:
    """Verify a credential issued by this package."""
    parser = argparse.ArgumentParser(
        description="Verify a challenge or stamp credential."
    )
    parser.add_argument(
        "--input",
        "-i",
        help="Path to the credential JSON file. If omitted, reads from stdin.",
    )
    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Quiet mode: suppress output, just return exit code.",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit structured JSON logs on stderr.",
    )

    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:  # pragma: no cover - controlled via tests
        exit_code = int(exc.code) if isinstance(exc.code, int) else 1
        return 0 if exit_code == 0 else 1

    package_logger = logging.getLogger("proof_stamps")
    listeners = []
    if args.log_json:
        listeners.append(
            configure_structured_logging(package_logger, level=logging.DEBUG)
        )

    try:
        credential = _load_credential(args.input, _read_stdin())
        is_valid = verify_credential(LocalSigningBackend(), credential)

        if not args.quiet:
            print(
                json.dumps(
                    {"valid": is_valid, "issuer": credential.get("issuer")},
                    separators=(",", ":"),
                )
            )
        return 0 if is_valid else 1

    except Exception as exc:
        if not args.quiet:
            print(str(exc), file=sys.stderr)
        return 1
    finally:
        shutdown_listeners(listeners)
        for handler in list(package_logger.handlers):
            if isinstance(handler, BoundedQueueHandler):
                package_logger.removeHandler(handler)


if __name__ == "__main__":
    raise SystemExit(main())
