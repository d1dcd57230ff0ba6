#!/usr/bin/env python3
"""
Full Analysis Runner

Runs one LinkScore analysis end to end without the API:
1. Validation (same rules as the intake endpoint)
2. Competitor discovery (DataForSEO SERP)
3. Backlink history for the customer and each competitor
4. Link gaps and scoring
5. Optional webhook delivery

Usage:
    # Set environment variables first:
    export DATAFORSEO_LOGIN=your_login
    export DATAFORSEO_PASSWORD=your_password

    # Run analysis:
    python scripts/run_full_analysis.py acme.com.au sydney 3000 12 "plumber sydney" "emergency plumber"

    # With options:
    python scripts/run_full_analysis.py acme.com.au sydney 3000 12 "plumber sydney" "blocked drains" \
        --email owner@acme.com.au \
        --output output/acme.json \
        --notify
"""

import asyncio
import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def run_full_analysis(
    domain: str,
    location: str,
    monthly_spend: float,
    investment_months: int,
    keywords: list,
    email: str = None,
    company_name: str = None,
    output: str = None,
    notify: bool = False,
):
    """Run complete analysis pipeline against the configured database."""

    load_dotenv()

    from linkscore.analyzer import AnalysisOrchestrator, default_client_factory
    from linkscore.database import JobRepository, create_db_engine, init_db, make_session_factory
    from linkscore.database.models import JobStatus
    from linkscore.delivery import WebhookNotifier
    from linkscore.errors import ValidationError
    from linkscore.intake import validate_submission
    from linkscore.output import format_results
    from linkscore.utils.config import get_settings

    settings = get_settings()
    if not settings.has_dataforseo_credentials:
        print("ERROR: Missing required environment variables:")
        print("  - DATAFORSEO_LOGIN")
        print("  - DATAFORSEO_PASSWORD")
        return None

    try:
        params = validate_submission(
            domain=domain,
            location=location,
            monthly_spend=monthly_spend,
            investment_months=investment_months,
            keywords=keywords,
            email=email,
            company_name=company_name,
            require_email=False,
        )
    except ValidationError as e:
        print(f"ERROR: {e}")
        return None

    print(f"\n{'='*70}")
    print("LINKSCORE ENGINE - FULL ANALYSIS")
    print(f"{'='*70}")
    print(f"Domain:       {params.domain}")
    print(f"Location:     {params.location} ({params.location_code})")
    print(f"Spend:        ${params.monthly_spend:,.0f}/month for {params.investment_months} months")
    print(f"Keywords:     {', '.join(params.keywords)}")
    print(f"{'='*70}\n")

    start_time = datetime.now()

    engine = create_db_engine(settings.DATABASE_URL)
    init_db(engine)
    repo = JobRepository(make_session_factory(engine))

    notifier = WebhookNotifier(settings.webhook_urls, timeout=settings.WEBHOOK_TIMEOUT_SECONDS) if notify else None
    orchestrator = AnalysisOrchestrator(repo, default_client_factory(settings), notifier=notifier, settings=settings)

    job = orchestrator.submit(params)
    print(f"Job: {job.id}")

    final_status = await orchestrator.run(job.id)
    duration = (datetime.now() - start_time).total_seconds()

    if final_status != JobStatus.COMPLETED:
        current = orchestrator.status(job.id)
        print(f"\n✗ Analysis {current['status']}: {current.get('message')}")
        return None

    results = format_results(orchestrator.results(job.id))
    scores = results["scores"]

    print("\n" + "="*70)
    print("ANALYSIS COMPLETE")
    print("="*70)
    print(f"LinkScore:        {scores['overall']}/100 ({results['interpretation']['grade']})")
    print(f"  Competitive:    {scores['competitive']}/30")
    print(f"  Performance:    {scores['performance']}/25")
    print(f"  Velocity:       {scores['velocity']}/20")
    print(f"  Market share:   {scores['marketShare']}/15")
    print(f"  Cost efficiency:{scores['costEfficiency']:>3}/10")
    print(f"Competitors:      {', '.join(results['competitors'])}")
    print(f"Link gaps:        {results['metrics']['linkGapsTotal']} ({results['metrics']['linkGapsHighPriority']} high priority)")
    print(f"Red flags:        {len(results['redFlags'])}")
    print(f"Duration:         {duration:.1f} seconds")
    print("="*70 + "\n")

    if output:
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps(results, indent=2, default=str))
        print(f"✓ Saved to: {output_path}")

    return results


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Run a LinkScore analysis from the command line"
    )
    parser.add_argument("domain", help="Domain to analyze (e.g., acme.com.au)")
    parser.add_argument("location", help="Location key (e.g., sydney, melbourne, australia_general)")
    parser.add_argument("monthly_spend", type=float, help="Monthly SEO spend in AUD")
    parser.add_argument("investment_months", type=int, help="Months invested so far")
    parser.add_argument("keywords", nargs="+", help="2-5 target keywords")
    parser.add_argument("--email", default=None, help="Contact email (optional)")
    parser.add_argument("--company", default=None, help="Company name (optional)")
    parser.add_argument("--output", default=None, help="Write the results JSON to this path")
    parser.add_argument(
        "--notify",
        action="store_true",
        help="Deliver the completion webhook to WEBHOOK_URLS"
    )

    args = parser.parse_args()

    result = asyncio.run(run_full_analysis(
        domain=args.domain,
        location=args.location,
        monthly_spend=args.monthly_spend,
        investment_months=args.investment_months,
        keywords=args.keywords,
        email=args.email,
        company_name=args.company,
        output=args.output,
        notify=args.notify,
    ))

    if result is None:
        sys.exit(1)


if __name__ == "__main__":
    main()
