#!/usr/bin/env python
"""
Quick reference: running the campaign sentinel test suites.

Execute this file or use the commands below directly.
"""

import subprocess


def run_tests():
    """Run every suite in dependency order."""

    print("=" * 70)
    print("RUNNING CAMPAIGN SENTINEL TEST SUITE")
    print("=" * 70)
    print()

    commands = [
        ("Unit Tests - Config & Logging", "pytest tests/unit/test_config.py -v"),
        ("Unit Tests - Statistics", "pytest tests/unit/test_statistics.py tests/unit/test_anomaly_baselines.py -v"),
        ("Unit Tests - Market Calendar", "pytest tests/unit/test_market_calendar.py -v"),
        ("Unit Tests - Readers", "pytest tests/unit/test_readers.py -v"),
        ("Unit Tests - Detection", "pytest tests/unit/test_anomaly_detectors.py tests/unit/test_scoring.py tests/unit/test_anomaly_engine.py -v"),
        ("Unit Tests - Root Cause", "pytest tests/unit/test_rootcause_analyzer.py -v"),
        ("Unit Tests - Alerts", "pytest tests/unit/test_alert_dispatcher.py tests/unit/test_alert_templates.py -v"),
        ("Integration Tests - Evaluation", "pytest tests/integration/ -v"),
    ]

    for name, cmd in commands:
        print(f"\n{'='*70}")
        print(f"{name}")
        print(f"{'='*70}")
        print(f"Command: {cmd}\n")
        result = subprocess.run(cmd, shell=True)
        if result.returncode != 0:
            print(f"❌ {name} failed")
        else:
            print(f"✓ {name} passed")


def run_specific_tests():
    """Print handy test commands."""

    print("\nQuick test commands:")
    print("  pytest tests/unit/ -v             # All unit tests")
    print("  pytest tests/integration/ -v      # All integration tests")
    print("  pytest tests/ -v -m 'not slow'    # Skip timeout tests")
    print("  pytest tests/ -v -k dispatcher    # Tests matching 'dispatcher'")


if __name__ == "__main__":
    run_tests()
    run_specific_tests()
