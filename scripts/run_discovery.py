"""
CLI Entry Point: Run Organization Discovery

Usage:
    python scripts/run_discovery.py --profile default
    python scripts/run_discovery.py --profile default --max-organizations 5 --batch-size 2
    python scripts/run_discovery.py --status 3f2c9a1e-...
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
from scout.discovery import DiscoveryExecutionResult, get_discovery_status, trigger_discovery


def print_result(result: DiscoveryExecutionResult) -> None:
    print("\n" + "=" * 70)
    print("📊 DISCOVERY RESULTS")
    print("=" * 70)
    print(f"  Run: {result.run_id or 'not created'}")
    print(f"  Status: {result.status} ({result.final_phase})")
    print(f"  Discovered: {result.organizations_discovered}")
    print(f"  Researched: {result.organizations_researched}")
    print(f"  Analyzed: {result.organizations_analyzed}")

    print(f"\n🏢 Ranked Organizations:")
    if result.ranked_results:
        for i, organization in enumerate(result.ranked_results, 1):
            fit = organization.get("fit_analysis") or {}
            score = fit.get("overall_fit_score", "N/A")
            print(f"  {i}. {organization['name']} (fit: {score}/10, research: {organization.get('research_status')})")
    else:
        print("  None")

    if result.summary:
        print(f"\n📝 Summary:\n{result.summary}")

    if result.errors:
        print(f"\n⚠️  Warnings:")
        for error in result.errors:
            print(f"  - {error}")
    print("=" * 70)


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
    parser = argparse.ArgumentParser(description="Discover and rank organizations for a profile")
    parser.add_argument("--profile", default="default", help="Stored profile id")
    parser.add_argument("--max-organizations", type=int, default=10, help="Organizations to discover")
    parser.add_argument("--batch-size", type=int, default=3, help="Organizations researched in parallel")
    parser.add_argument("--status", metavar="RUN_ID", help="Show a finished run instead of starting one")
    parser.add_argument("--log-level", default="INFO", help="DEBUG, INFO, WARNING or ERROR")

    args = parser.parse_args()
    setup_logging(level=args.log_level)

    if args.status:
        result = get_discovery_status(args.status)
        if result is None:
            print(f"❌ Discovery run not found: {args.status}")
            sys.exit(1)
        print_result(result)
        return

    validate_config()
    result = trigger_discovery(
        args.profile,
        max_organizations=args.max_organizations,
        batch_size=args.batch_size,
    )
    print_result(result)
    print_api_usage()
    if not result.succeeded:
        sys.exit(1)
    print("\n✅ Discovery complete!")


if __name__ == "__main__":
    main()
