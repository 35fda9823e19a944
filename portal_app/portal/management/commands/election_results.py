from __future__ import annotations

import json
from typing import override

from django.core.management.base import BaseCommand, CommandError

from portal.elections_services import election_results
from portal.models import Election


class Command(BaseCommand):
    help = "Print vote counts, winners and turnout for one election."

    def add_arguments(self, parser) -> None:
        parser.add_argument("election_id", type=int)
        parser.add_argument(
            "--json",
            action="store_true",
            help="Emit machine-readable JSON instead of a text report.",
        )

    @override
    def handle(self, *args, **options) -> None:
        election = Election.objects.filter(pk=options["election_id"]).first()
        if election is None:
            raise CommandError(f"Election {options['election_id']} does not exist.")

        results = election_results(election=election)

        if options.get("json"):
            payload = {
                "election_id": election.id,
                "title": election.title,
                "status": results.status,
                "positions": [
                    {
                        "id": position.public_id,
                        "title": position.title,
                        "number_of_winners": position.number_of_winners,
                        "counts": {
                            str(cid): count for cid, count in results.vote_counts.get(position.id, {}).items()
                        },
                        "winners": results.winners.get(position.id, []),
                    }
                    for position in results.positions
                ],
                "total_voters": results.total_voters,
                "participating_voter_count": results.participating_voter_count,
                "turnout_percent": results.turnout_percent,
            }
            self.stdout.write(json.dumps(payload, indent=2, sort_keys=True))
            return

        self.stdout.write(f"{election.title} ({results.status})")
        for position in results.positions:
            winners = set(results.winners.get(position.id, []))
            counts = results.vote_counts.get(position.id, {})
            self.stdout.write(f"  {position.title} (winners: {position.number_of_winners})")
            for candidate in position.candidates.all():
                marker = " *" if candidate.faculty_id in winners else ""
                self.stdout.write(f"    {candidate.faculty.name}: {counts.get(candidate.faculty_id, 0)}{marker}")

        self.stdout.write(
            f"Turnout: {results.participating_voter_count}/{results.total_voters} "
            f"({results.turnout_percent}%)"
        )
