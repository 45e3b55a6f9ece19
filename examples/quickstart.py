#!/usr/bin/env python3
"""inputguard quickstart.

Walks through the core workflow:

1. Build a guard with the built-in rule catalog.
2. Validate form fields against catalog rules.
3. Use the typed validators (integer, date, card number).
4. Spot an encoded evasion attempt.
5. Read a bounded line from a byte stream.
6. Run a command in the sandbox with validated arguments.

Run:
    python examples/quickstart.py
"""
from __future__ import annotations

import io
import os
import shutil

from inputguard import (
    Accepted,
    ExecutorFailure,
    InputGuard,
    IntrusionSuspected,
    Rejected,
)
from inputguard.core.logging import configure_logging


def describe(outcome: object) -> str:
    match outcome:
        case Accepted(value=value):
            return f"accepted -> {value!r}"
        case IntrusionSuspected(reason=reason):
            return f"INTRUSION -> {reason}"
        case Rejected(reason=reason):
            return f"rejected -> {reason}"
    return repr(outcome)


def main() -> None:
    configure_logging("WARNING")

    # -- Step 1: Build the guard -----------------------------------------------
    guard = InputGuard.default()
    print(f"[1] {guard!r}")

    # -- Step 2: Catalog rules ---------------------------------------------------
    print("[2] Catalog rules")
    for rule, value in [
        ("Email", "jeff.williams@aspectsecurity.com"),
        ("Email", "jeff.williams@@aspectsecurity.com"),
        ("IPAddress", "192.168.1.234"),
        ("SSN", "078-05-1120"),
    ]:
        print(f"    {rule:<10} {value!r:<40} {describe(guard.validate('form', value, rule))}")

    # -- Step 3: Typed validators ------------------------------------------------
    validators = guard.validators
    print("[3] Typed validators")
    print(f"    integer   {describe(validators.validate_integer('age', '42', 0, 150))}")
    print(f"    date      {describe(validators.validate_date('dob', 'June 23, 1967'))}")
    print(f"    card      {describe(validators.validate_credit_card('card', '1234 9876 0000 0008'))}")

    # -- Step 4: Encoded evasion -------------------------------------------------
    print("[4] Encoded input")
    print(f"    file name {describe(validators.validate_file_name('upload', '..%2Fetc%2Fpasswd'))}")

    # -- Step 5: Bounded read ----------------------------------------------------
    stream = io.BytesIO(b"first line\nsecond line\n")
    print(f"[5] Read line: {guard.read_line(stream, 64)!r}")

    # -- Step 6: Sandboxed execution ---------------------------------------------
    echo = shutil.which("echo")
    if echo is None or os.name != "posix":
        print("[6] Skipped: no POSIX echo binary")
        return
    try:
        result = guard.executor.run(os.path.realpath(echo), ["hello", "sandbox"], "/", timeout=5)
    except ExecutorFailure as exc:
        print(f"[6] {exc.code}: {exc.message}")
        return
    print(f"[6] exit_code={result.exit_code} output={result.output!r}")


if __name__ == "__main__":
    main()
