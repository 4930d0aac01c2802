# main.py  (print-only standings report)

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from config import load_league_config, settings
from service import PolicyInputs, StandingsMode, StandingsReport, compute_standings
from sleeper_client import SleeperAPIError, SleeperClient
from standings import standings_to_dataframe


def hr(char="─", n=80):  # horizontal rule
    print(char * n)


def print_standings(report: StandingsReport, show_notes: bool = False):
    title = "Final standings" if report.final_available else "Regular season standings"
    print(f"{title}: league {report.league_id}"); hr()
    print(f"{'#':<4}{'Team':<28} {'W-L-T':>9} {'PF':>9} {'PA':>9}  {'Outcome'}")
    hr("—", 80)
    for entry in report.standings:
        name = (entry.display_name or str(entry.team_id))[:27]
        record = f"{entry.wins}-{entry.losses}-{entry.ties}"
        outcome = entry.playoff_outcome or ""
        print(f"{entry.rank:<4}{name:<28} {record:>9} {entry.points_for:>9.2f} {entry.points_against:>9.2f}  {outcome}")
        if show_notes and entry.tiebreak_notes:
            print(f"    {entry.tiebreak_notes}")
    print()
    print(report.policy_note)
    for note in report.notes:
        print(f"Note: {note}")
    print(report.summary)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compute fantasy league standings with configurable tiebreakers.")
    parser.add_argument("league_id", help="Sleeper league id.")
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in StandingsMode],
        default=StandingsMode.REGULAR_SEASON.value,
        help="regular_season ranks by record; final overlays the playoff bracket.",
    )
    parser.add_argument(
        "--tiebreaker",
        action="append",
        dest="tiebreakers",
        default=[],
        help="Tiebreaker criterion, repeat in priority order (e.g. --tiebreaker wins --tiebreaker head_to_head).",
    )
    parser.add_argument("--instructions", help="Free-text tiebreak rules, e.g. 'wins then head to head then points for'.")
    parser.add_argument("--seed", type=int, help="Seed for the random tiebreaker (reproducible coin flips).")
    parser.add_argument("--playoff-teams", type=int, help="Override the default playoff bracket size.")
    parser.add_argument("--csv", help="Also write the standings table to this CSV path.")
    parser.add_argument("--notes", action="store_true", help="Print per-team tiebreak notes.")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ...).")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO), format="%(levelname)s - %(message)s")

    if args.playoff_teams:
        settings.set("default_playoff_teams", args.playoff_teams)

    inputs = PolicyInputs(
        tiebreak_order=args.tiebreakers or None,
        instructions=args.instructions,
        random_seed=args.seed,
    )
    try:
        report = compute_standings(
            args.league_id,
            inputs,
            args.mode,
            client=SleeperClient(),
            league_config=load_league_config(),
        )
    except SleeperAPIError as exc:
        print(f"Failed to load league {args.league_id}: {exc}", file=sys.stderr)
        return 1

    print_standings(report, show_notes=args.notes)
    if args.csv:
        standings_to_dataframe(report.standings).to_csv(args.csv, index=False)
        print(f"Wrote {len(report.standings)} rows to {args.csv}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
