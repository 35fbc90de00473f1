"""
Nomenclature Harvester

Resumable crawler for the Access2Markets product nomenclature tree:
- Loads the top-level sections for a destination country
- Expands every branch depth-first, one API call per internal node
- Writes one JSON file per completed section
- Pauses (instead of failing) on rate limits, verification challenges and
  network errors, and resumes exactly where it stopped
"""

import sys
import json
import asyncio
import logging
import argparse

from profile_loader import HarvestProfile, load_profile, validate_profile
from orchestrator import ALL_SECTIONS, Orchestrator
from traversal_engine import COMPLETED, PAUSED

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

EXIT_PAUSED = 2


def _load_profile(path):
    """Load a profile file, or return defaults when none is given."""
    if not path:
        return HarvestProfile()

    logger.info(f"Loading profile: {path}")
    try:
        profile = load_profile(path)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Invalid profile: {e}")
        sys.exit(1)

    warnings = validate_profile(profile)
    if warnings:
        logger.warning("Profile validation warnings:")
        for warning in warnings:
            logger.warning(f"  - {warning}")

    return profile


def _print_json(data):
    print(json.dumps(data, indent=2, ensure_ascii=False))


async def _run_command(args, profile):
    """Execute one CLI command against a freshly wired orchestrator."""
    orchestrator = Orchestrator.from_profile(profile, output_dir=args.output, state_file=args.state_file)

    summaries = []
    orchestrator.subscribe(lambda payload: summaries.append(payload['summary'])
                           if payload.get('completed') else None)

    try:
        country_code = args.country or profile.country_code
        if country_code:
            orchestrator.update_country(country_code, args.label or profile.country_label)

        if args.command == 'status':
            _print_json(orchestrator.status())
            return 0

        if args.command == 'sections':
            result = await orchestrator.load_sections()
            if not result['ok']:
                logger.error(result['error'])
                return EXIT_PAUSED
            for section in result['sections']:
                print(f"{section['key']}\t{section['label']}\t{section['name']}")
            return 0

        if args.command == 'countries':
            _print_json(await orchestrator.countries())
            return 0

        if args.command == 'clear':
            orchestrator.clear()
            return 0

        if args.command == 'resume':
            outcome = await orchestrator.resume()
        else:
            section_key = ALL_SECTIONS if args.all else args.section
            if section_key is None and profile.sections:
                orchestrator.state.desired_section_keys = list(profile.sections)
            outcome = await orchestrator.start(section_key, restart=args.restart)

        if outcome == PAUSED:
            state = orchestrator.state
            logger.warning(f"Harvest paused: {state.pause_reason}")
            logger.warning("Resolve the issue, then run: python harvester.py resume")
            return EXIT_PAUSED

        if outcome == COMPLETED and summaries:
            _print_json(summaries[-1])
        return 0
    finally:
        await orchestrator.close()


def main():
    """Main entry point with argument parsing."""
    parser = argparse.ArgumentParser(
        description='Resumable nomenclature harvester',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Harvest every section for France
  python harvester.py run --country FR

  # Harvest one section, starting over
  python harvester.py run --section I --restart

  # Continue after a pause (rate limit, verification, network error)
  python harvester.py resume

  # Inspect state
  python harvester.py status
  python harvester.py sections --country DE
        """
    )

    parser.add_argument('command', nargs='?', default='run',
                        choices=['run', 'resume', 'status', 'sections', 'countries', 'clear'],
                        help='What to do (default: run)')

    parser.add_argument('--profile', help='Harvest profile YAML file')
    parser.add_argument('--country', help='Destination country code (e.g. FR)')
    parser.add_argument('--label', help='Display label for the country')
    parser.add_argument('--section', help='Harvest only this section key')
    parser.add_argument('--all', action='store_true', help='Harvest every section')
    parser.add_argument('--restart', action='store_true',
                        help='Drop the saved state and reload the section list')
    parser.add_argument('--output', help='Output directory for section files')
    parser.add_argument('--state-file', help='Path of the saved crawl state')

    args = parser.parse_args()

    if args.section and args.all:
        logger.error("Use either --section or --all, not both")
        sys.exit(1)

    profile = _load_profile(args.profile)

    try:
        sys.exit(asyncio.run(_run_command(args, profile)))
    except KeyboardInterrupt:
        logger.info("Interrupted; progress is saved. Run 'python harvester.py resume' to continue.")
        sys.exit(130)


if __name__ == "__main__":
    main()
