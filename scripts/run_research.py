"""
CLI Entry Point: Research Organizations

Usage:
    python scripts/run_research.py --organization "Acme Robotics"
    python scripts/run_research.py --scheduled --limit 5
"""

import argparse
import sys
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from scout.common.config import Config
from scout.common.error_handling import ConfigurationError
from scout.common.logger import setup_logging
from scout.common.rate_limiter import get_rate_limiter_registry
from scout.research import ResearchExecutionResult, run_scheduled_research, trigger_research


def print_result(result: ResearchExecutionResult) -> None:
    icon = "✅" if result.succeeded else "❌"
    print(f"\n{icon} {result.organization_name}: {result.status} ({result.final_phase})")
    if result.score is not None:
        print(f"  Score: {result.score}/10")
    print(f"  Signals: {result.signals_found}, Contacts: {result.contacts_found}")
    if result.summary:
        print(f"  Summary: {result.summary[:300]}")
    for error in result.errors:
        print(f"  - {error}")


def validate_config() -> None:
    print("🔍 Validating configuration...")
    try:
        Config.validate()
    except ConfigurationError as e:
        print(f"❌ {e}")
        sys.exit(1)
    print("✅ Configuration valid")
    print(Config.summary())


def print_api_usage() -> None:
    usage = get_rate_limiter_registry().get_all_stats()
    if not usage:
        return
    print("\n📈 API usage:")
    for provider, limiter in usage.items():
        stats = limiter["stats"]
        print(f"  {provider}: {stats['total_requests']} requests, {stats['waits_count']} rate-limit waits")


def main():
    parser = argparse.ArgumentParser(description="Research one organization or refresh stale ones")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--organization", help="Organization name to research")
    group.add_argument("--scheduled", action="store_true", help="Research pending and stale organizations")
    parser.add_argument("--profile", default="default", help="Profile id the organizations belong to")
    parser.add_argument("--limit", type=int, default=5, help="Organizations per scheduled run")
    parser.add_argument("--log-level", default="INFO", help="DEBUG, INFO, WARNING or ERROR")

    args = parser.parse_args()
    setup_logging(level=args.log_level)
    validate_config()

    if args.scheduled:
        results = run_scheduled_research(limit=args.limit, profile_id=args.profile)
        print("=" * 70)
        print(f"📊 Scheduled research: {len(results)} organizations")
        print("=" * 70)
        for result in results:
            print_result(result)
        print_api_usage()
        if any(not r.succeeded for r in results):
            sys.exit(1)
        return

    result = trigger_research(args.organization, profile_id=args.profile)
    print_result(result)
    print_api_usage()
    if not result.succeeded:
        sys.exit(1)


if __name__ == "__main__":
    main()
