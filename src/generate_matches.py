import argparse
import os
import sys
import yaml
from tourney.elimination import build_bracket, get_round_name
from tourney.errors import TournamentError
from tourney.models import Participant, ParticipantSet
from tourney.season import schedule_season
from tourney.shuffle import make_shuffle


def load_participants(file_path):
    """
    Load participants from YAML.

    Accepts either a mapping of group name to participant names, or a list of
    {id, name, seed, group} entries.
    """
    with open(file_path, mode='r', encoding='utf-8') as file:
        data = yaml.safe_load(file) or []
    participants = []
    if isinstance(data, dict):
        for group_name, names in data.items():
            for name in names or []:
                participants.append(Participant(id=name, name=name, group=str(group_name)))
    else:
        for entry in data:
            if isinstance(entry, str):
                participants.append(Participant(id=entry, name=entry))
            else:
                participants.append(Participant.from_dict(entry))
    return ParticipantSet(participants)


def format_season(groups, matches):
    lines = []
    for group in groups:
        if lines:
            lines.append('')
        lines.append(f"# Group {group.number}")
        for match in matches:
            if match.group_number == group.number:
                lines.append(f"{match.match_number}. {match.player1.name} vs {match.player2.name}")
    return lines


def format_bracket(bracket):
    def name(participant):
        return participant.name if participant else 'TBD'

    lines = []
    for round_number in range(1, bracket.total_rounds + 1):
        if lines:
            lines.append('')
        lines.append(f"# {get_round_name(round_number, bracket.total_rounds)}")
        for match in bracket.matches_in_round(round_number):
            label = 'Bronze: ' if round_number == bracket.total_rounds and match.match_number == 2 else ''
            if match.is_bye:
                lines.append(f"{match.match_number}. {name(match.winner)} (BYE)")
            else:
                lines.append(f"{match.match_number}. {label}{name(match.player1)} vs {name(match.player2)}")
    return lines


def main(argv=None):
    script_dir = os.path.dirname(__file__)
    base_dir = os.path.dirname(script_dir)

    parser = argparse.ArgumentParser(description='Print a round robin schedule or an elimination draw')
    parser.add_argument('participants_file', nargs='?',
                        default=os.path.join(base_dir, 'data', 'participants.yaml'),
                        help='Participants YAML file (default: data/participants.yaml)')
    parser.add_argument('--format', choices=['season', 'bracket'], default='season')
    parser.add_argument('--groups', type=int, default=1, help='Number of groups when none are pre-assigned')
    parser.add_argument('--seed', type=int, help='Random seed for a repeatable draw')
    parser.add_argument('--no-bronze', action='store_true', help='Skip the third place match')
    args = parser.parse_args(argv)

    shuffle = make_shuffle(args.seed)
    try:
        participants = load_participants(args.participants_file)
        if args.format == 'bracket':
            lines = format_bracket(build_bracket(participants, not args.no_bronze, shuffle))
        else:
            groups, matches = schedule_season(participants, args.groups, shuffle)
            lines = format_season(groups, matches)
    except (OSError, TournamentError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for line in lines:
        print(line)
    return 0


if __name__ == '__main__':
    sys.exit(main())
