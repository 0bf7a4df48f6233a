"""Command line entry point for tournament simulations.

Examples:
    python -m swissarbiter.testing generate --players 24 --rounds 7
    swissarbiter-sim batch --tournaments 50 --seed 1
"""

# Swiss Arbiter
# Copyright (C) 2025  Swiss Arbiter developers
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.

import argparse
import logging
import sys
from pathlib import Path

from swissarbiter.models import ByeBuchholzPolicy, MissedRoundPolicy
from swissarbiter.testing.rtg import (
    RandomTournamentGenerator,
    RatingDistribution,
    ResultPattern,
    RTGConfig,
)
from swissarbiter.utils import configure_logging, setup_logger

logger = setup_logger(__name__)


def _config_from_args(args: argparse.Namespace, seed=None) -> RTGConfig:
    return RTGConfig(
        num_players=args.players,
        num_rounds=args.rounds,
        rating_distribution=RatingDistribution(args.distribution),
        result_pattern=ResultPattern(args.pattern),
        seed=seed if seed is not None else args.seed,
        forfeit_percentage=args.forfeits,
        withdrawal_percentage=args.withdrawals,
        missed_round_policy=MissedRoundPolicy(args.missed_round_policy),
        bye_buchholz_policy=ByeBuchholzPolicy(args.bye_buchholz_policy),
        storage=args.storage,
    )


def run_generate_command(args: argparse.Namespace) -> int:
    """Play one tournament and print its standings."""
    rtg = RandomTournamentGenerator(_config_from_args(args))
    data = rtg.generate_complete_tournament()

    if args.output:
        output_path = Path(args.output)
        output_path.write_text(rtg.export_json_format(data), encoding="utf-8")
        print(f"Tournament saved to: {output_path}")

    print(f"\nPlayers: {len(data['players'])}   Rounds: {len(data['rounds'])}\n")
    for entry in data["standings"]:
        values = " ".join(f"{v:g}" for v in entry.tiebreak_values)
        print(f"{entry.rank:>3}. {entry.name:<12} {entry.rating:>5} {entry.points:>5g}  {values}")

    for violation in data["violations"]:
        print(f"VIOLATION {violation}")
    return 1 if data["violations"] else 0


def run_batch_command(args: argparse.Namespace) -> int:
    """Play many tournaments and report invariant violations."""
    failures = 0
    for index in range(args.tournaments):
        seed = (args.seed or 0) + index
        data = RandomTournamentGenerator(_config_from_args(args, seed)).generate_complete_tournament()
        if data["violations"]:
            failures += 1
            print(f"seed {seed}: {len(data['violations'])} violation(s)")
            for violation in data["violations"]:
                print(f"  {violation}")
    print(f"{args.tournaments - failures}/{args.tournaments} tournaments clean")
    return 1 if failures else 0


def _add_tournament_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--players", type=int, default=24, help="Number of players")
    parser.add_argument("--rounds", type=int, default=7, help="Number of rounds")
    parser.add_argument(
        "--distribution",
        choices=[d.value for d in RatingDistribution],
        default=RatingDistribution.NORMAL.value,
    )
    parser.add_argument(
        "--pattern",
        choices=[p.value for p in ResultPattern],
        default=ResultPattern.REALISTIC.value,
    )
    parser.add_argument("--seed", type=int, help="Random seed")
    parser.add_argument("--forfeits", type=float, default=0.0, help="Forfeit chance per game (%%)")
    parser.add_argument(
        "--withdrawals", type=float, default=0.0, help="Withdrawal chance per player and round (%%)"
    )
    parser.add_argument(
        "--missed-round-policy",
        choices=[p.value for p in MissedRoundPolicy],
        default=MissedRoundPolicy.ZERO.value,
    )
    parser.add_argument(
        "--bye-buchholz-policy",
        choices=[p.value for p in ByeBuchholzPolicy],
        default=ByeBuchholzPolicy.OWN_SCORE.value,
    )
    parser.add_argument("--storage", choices=["memory", "sqlite"], default="memory")


def create_main_parser() -> argparse.ArgumentParser:
    """Create main argument parser."""
    parser = argparse.ArgumentParser(
        prog="swissarbiter-sim",
        description="Random tournament simulations for Swiss Arbiter",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log progress")
    subparsers = parser.add_subparsers(dest="command", required=True)

    gen_parser = subparsers.add_parser("generate", help="Play one random tournament")
    _add_tournament_arguments(gen_parser)
    gen_parser.add_argument("--output", help="Write the tournament as JSON")
    gen_parser.set_defaults(func=run_generate_command)

    batch_parser = subparsers.add_parser("batch", help="Play many tournaments, report violations")
    _add_tournament_arguments(batch_parser)
    batch_parser.add_argument("--tournaments", type=int, default=20)
    batch_parser.set_defaults(func=run_batch_command)

    return parser


def main(argv=None) -> int:
    """Main entry point for swissarbiter-sim."""
    args = create_main_parser().parse_args(argv)
    configure_logging(logging.INFO if args.verbose else logging.WARNING)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
