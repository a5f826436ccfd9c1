#!/usr/bin/env python3
"""Test runner script for talkman-relay."""

import argparse
import subprocess
import sys


def run_tests(test_type="all", verbose=False, coverage=False, parallel=False, marker=None):
    """
    Run tests with specified configuration.

    Args:
        test_type: Type of tests to run (all, unit, integration)
        verbose: Enable verbose output
        coverage: Enable coverage reporting
        parallel: Enable parallel test execution
        marker: Specific pytest marker expression to run
    """
    cmd = [sys.executable, "-m", "pytest"]

    if test_type == "unit":
        cmd.append("tests/unit/")
    elif test_type == "integration":
        cmd.append("tests/integration/")
    else:
        cmd.append("tests/")

    if marker:
        cmd.extend(["-m", marker])

    cmd.append("-vv" if verbose else "-v")

    if coverage:
        cmd.extend([
            "--cov=src/talkman_relay",
            "--cov-report=html:htmlcov",
            "--cov-report=term-missing",
        ])

    if parallel:
        # Enable -n auto only if pytest-xdist is installed
        from importlib.util import find_spec
        if find_spec("xdist"):
            cmd.extend(["-n", "auto"])
        else:
            print("Warning: pytest-xdist not installed, running tests sequentially")

    cmd.extend(["--tb=short", "--durations=10"])

    print(f"Running command: {' '.join(cmd)}")
    print("-" * 70)

    try:
        # List form with shell=False; arguments come from argparse choices
        result = subprocess.run(cmd, check=False)  # noqa: S603
    except KeyboardInterrupt:
        print("\nTests interrupted by user")
        return 130
    return result.returncode


def main():
    """Main test runner entry point."""
    parser = argparse.ArgumentParser(description="Run talkman-relay tests")
    parser.add_argument(
        "test_type",
        nargs="?",
        default="all",
        choices=["all", "unit", "integration"],
        help="Type of tests to run (default: all)"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("-c", "--coverage", action="store_true", help="Enable coverage reporting")
    parser.add_argument(
        "-p", "--parallel",
        action="store_true",
        help="Run tests in parallel (requires pytest-xdist)"
    )
    parser.add_argument("-m", "--marker", help="Run tests matching a marker expression")
    parser.add_argument("--fast", action="store_true", help="Exclude slow tests")

    args = parser.parse_args()

    marker = "not slow" if args.fast else args.marker

    return run_tests(
        test_type=args.test_type,
        verbose=args.verbose,
        coverage=args.coverage,
        parallel=args.parallel,
        marker=marker
    )


if __name__ == "__main__":
    sys.exit(main())
