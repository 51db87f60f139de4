"""
CLI wrapper for build_request_context().

Usage:
    python -m lifechart.run --sex male --birth-year 1990 \
        --year-pillar 庚午 --month-pillar 己卯 --day-pillar 己酉 --hour-pillar 己巳 \
        [--start-age N | --birth-date YYYY-MM-DD] [--first-decade LABEL] \
        [--name NAME] [--output PATH] [--verbose]
"""

import argparse
import json
import logging
from pathlib import Path

from lifechart.bazi import resolve_direction
from lifechart.life_chart import BirthInput, InvalidBirthInput, build_request_context

logger = logging.getLogger("lifechart")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compute the decade progression and 100-year chart skeleton.")
    parser.add_argument("--name", default=None)
    parser.add_argument("--sex", required=True, choices=["male", "female"])
    parser.add_argument("--birth-year", required=True, dest="birth_year", type=int)
    parser.add_argument("--year-pillar", required=True, dest="year_pillar")
    parser.add_argument("--month-pillar", required=True, dest="month_pillar")
    parser.add_argument("--day-pillar", required=True, dest="day_pillar")
    parser.add_argument("--hour-pillar", required=True, dest="hour_pillar")
    parser.add_argument("--start-age", dest="start_age", type=int, default=None,
                        help="Virtual age when the first decade pillar starts (default: estimated from --birth-date, else 1)")
    parser.add_argument("--birth-date", dest="birth_date", default=None,
                        help="Birth date (YYYY-MM-DD); estimates --start-age from solar terms")
    parser.add_argument("--first-decade", dest="first_decade", default=None,
                        help="First decade pillar (default: derived from the month pillar)")
    parser.add_argument("--output", help="Output file path (default: stdout)")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    start_age = args.start_age
    if start_age is None and args.birth_date:
        from lifechart.astro_calendar import estimate_start_age

        direction = resolve_direction(args.sex, args.year_pillar)
        try:
            start_age = estimate_start_age(args.birth_date, direction)
        except ValueError as e:
            parser.error(f"--birth-date: {e}")
        logger.info("estimated start age %d from birth date %s", start_age, args.birth_date)
    elif start_age is None:
        start_age = 1

    form = {
        "name": args.name,
        "sex": args.sex,
        "birth_year": args.birth_year,
        "year_pillar": args.year_pillar,
        "month_pillar": args.month_pillar,
        "day_pillar": args.day_pillar,
        "hour_pillar": args.hour_pillar,
        "start_age": start_age,
        "first_decade": args.first_decade,
    }
    try:
        birth = BirthInput.from_form(form)
    except InvalidBirthInput as e:
        parser.error(str(e))

    context = build_request_context(birth)
    output = json.dumps(context, indent=2, ensure_ascii=False)

    if args.output:
        Path(args.output).write_text(output, encoding="utf-8")
        print(args.output)
    else:
        print(output)
    return 0


if __name__ == "__main__":
    main()
