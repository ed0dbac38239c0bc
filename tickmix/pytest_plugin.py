"""pytest plugin that prints tick symbols instead of progress letters.

``pytest --tickmix | tickmix play`` turns a test run into sound.
"""

from __future__ import annotations

import json

import pytest

from .events import PAYLOAD_END, PAYLOAD_START
from .waveforms import FAILURE_SYMBOL, PASS_SYMBOL, PENDING_SYMBOL

_OPTION = "tickmix"


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("tickmix")
    group.addoption(
        "--tickmix",
        action="store_true",
        dest=_OPTION,
        default=False,
        help="report test progress with tickmix sound symbols",
    )


def pytest_report_teststatus(
    report: pytest.TestReport, config: pytest.Config
) -> tuple[str, str, str] | None:
    if not config.getoption(_OPTION, default=False):
        return None
    if hasattr(report, "wasxfail"):
        return None
    if report.when == "call":
        if report.passed:
            return "passed", PASS_SYMBOL, "PASSED"
        if report.failed:
            return "failed", FAILURE_SYMBOL, "FAILED"
    if report.skipped:
        return "skipped", PENDING_SYMBOL, "SKIPPED"
    if report.failed:
        return "error", FAILURE_SYMBOL, "ERROR"
    return None


def side_channel(payload: str) -> str:
    """Wrap ``payload`` so the player routes it to its side-channel hook."""
    return f"{PAYLOAD_START}{payload}{PAYLOAD_END}"


def pytest_terminal_summary(
    terminalreporter: pytest.TerminalReporter, exitstatus: int, config: pytest.Config
) -> None:
    if not config.getoption(_OPTION, default=False):
        return
    counts = {
        outcome: len(terminalreporter.stats.get(outcome, []))
        for outcome in ("passed", "failed", "skipped", "error")
    }
    counts["exitstatus"] = int(exitstatus)
    terminalreporter.write_line(side_channel(json.dumps(counts, sort_keys=True)))
