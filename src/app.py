"""
JSON API over a single event stored as YAML files in DATA_DIR.

Every call that builds or changes matches holds the data lock for the whole
load-compute-save cycle, and match lists are written to a temp file and
swapped in with os.replace.
"""
import os
import tempfile
import yaml
from filelock import FileLock
from flask import Flask, request, jsonify
from tourney.advancement import AdvancementEngine
from tourney.config import load_settings, save_settings, merge_settings
from tourney.elimination import build_bracket, get_round_name
from tourney.errors import TournamentError, MatchNotFound, InvalidParticipantSet
from tourney.models import Participant, ParticipantSet, Match, Group, AuxiliaryCounter, StatCategory
from tourney.playoffs import seed_playoffs
from tourney.season import schedule_season
from tourney.shuffle import make_shuffle, default_shuffle
from tourney.standings import calculate_group_standings, all_groups_view

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('TOURNAMENT_DATA_DIR', os.path.join(BASE_DIR, 'data'))
LOCK_TIMEOUT = 10


class BadRequest(Exception):
    pass


def _file_path(filename):
    """Path of a data file inside the current DATA_DIR."""
    return os.path.join(DATA_DIR, filename)


def _data_lock():
    os.makedirs(DATA_DIR, exist_ok=True)
    return FileLock(_file_path('.lock'), timeout=LOCK_TIMEOUT)


def _read_yaml(filename, default):
    path = _file_path(filename)
    if not os.path.exists(path):
        return default
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
    return data if data else default


def _write_yaml(filename, data):
    """Write YAML atomically: readers see either the old file or the new one."""
    os.makedirs(DATA_DIR, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=DATA_DIR, prefix=f'.{filename}.', suffix='.tmp')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
        os.replace(tmp_path, _file_path(filename))
    except BaseException:
        os.unlink(tmp_path)
        raise


def load_participants() -> ParticipantSet:
    """Load the roster from participants.yaml."""
    return ParticipantSet(Participant.from_dict(p) for p in _read_yaml('participants.yaml', []))


def save_participants(participants: ParticipantSet):
    _write_yaml('participants.yaml', [p.to_dict() for p in participants])


def load_event(participants: ParticipantSet):
    """Load groups, matches and counters. Returns (groups, matches, counters)."""
    data = _read_yaml('event.yaml', {})
    by_id = participants.by_id()
    groups = [
        Group(int(number), [by_id[pid] for pid in member_ids if pid in by_id])
        for number, member_ids in (data.get('groups') or {}).items()
    ]
    matches = [Match.from_dict(m, by_id) for m in data.get('matches') or []]
    counters = [
        AuxiliaryCounter(c['participant_id'], StatCategory(c['category']), int(c.get('value', 1)))
        for c in data.get('counters') or []
    ]
    return groups, matches, counters


def save_event(groups, matches, counters):
    _write_yaml('event.yaml', {
        'groups': {g.number: [p.id for p in g.members] for g in groups},
        'matches': [m.to_dict() for m in matches],
        'counters': [
            {'participant_id': c.participant_id, 'category': c.category.value, 'value': c.value}
            for c in counters
        ],
    })


def load_current_settings():
    return load_settings(_file_path('settings.yaml'))


def _shuffle_for(settings):
    seed = settings.get('random_seed')
    return make_shuffle(seed) if seed is not None else default_shuffle


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest('Request body must be a JSON object')
    return data


def _require_int(data, key):
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise BadRequest(f'{key} must be an integer')
    return value


def _default_groups(participants, groups):
    return groups or [Group(1, list(participants))]


@app.errorhandler(TournamentError)
def handle_tournament_error(error):
    status = 404 if isinstance(error, MatchNotFound) else 400
    app.logger.warning(f'{type(error).__name__}: {error}')
    return jsonify({'error': str(error), 'kind': type(error).__name__}), status


@app.errorhandler(BadRequest)
def handle_bad_request(error):
    return jsonify({'error': str(error), 'kind': 'BadRequest'}), 400


@app.route('/api/participants', methods=['GET'])
def api_get_participants():
    return jsonify({'participants': [p.to_dict() for p in load_participants()]})


@app.route('/api/participants', methods=['POST'])
def api_set_participants():
    """Replace the roster. Existing matches are cleared since they reference the old roster."""
    data = _json_body()
    raw = data.get('participants')
    if not isinstance(raw, list):
        raise BadRequest('participants must be a list')
    try:
        participants = ParticipantSet(Participant.from_dict(p) for p in raw)
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidParticipantSet(f'Invalid participant entry: {e}') from e
    with _data_lock():
        save_participants(participants)
        save_event([], [], [])
    app.logger.info(f'Roster replaced: {len(participants)} participants')
    return jsonify({'success': True, 'count': len(participants)})


@app.route('/api/settings', methods=['GET'])
def api_get_settings():
    return jsonify(load_current_settings())


@app.route('/api/settings', methods=['POST'])
def api_set_settings():
    data = _json_body()
    with _data_lock():
        settings = merge_settings({**load_current_settings(), **data})
        save_settings(_file_path('settings.yaml'), settings)
    return jsonify(settings)


@app.route('/api/matches', methods=['GET'])
def api_get_matches():
    participants = load_participants()
    _, matches, _ = load_event(participants)
    round_filter = request.args.get('round', type=int)
    if round_filter is not None:
        matches = [m for m in matches if m.round == round_filter]
    return jsonify({'matches': [m.to_dict() for m in matches]})


@app.route('/api/bracket/generate', methods=['POST'])
def api_generate_bracket():
    """Build an elimination bracket from the whole roster, replacing all matches."""
    with _data_lock():
        settings = load_current_settings()
        participants = load_participants()
        bracket = build_bracket(participants, settings['bracket_has_bronze_match'], _shuffle_for(settings))
        save_event([], bracket.matches, [])
    app.logger.info(f'Generated bracket: {bracket}')
    return jsonify(bracket.to_dict())


@app.route('/api/season/generate', methods=['POST'])
def api_generate_season():
    """Partition the roster into groups and schedule the round robin."""
    with _data_lock():
        settings = load_current_settings()
        participants = load_participants()
        groups, matches = schedule_season(participants, settings['group_count'], _shuffle_for(settings))
        save_event(groups, matches, [])
    app.logger.info(f'Generated season: {len(groups)} groups, {len(matches)} matches')
    return jsonify({
        'groups': {g.number: [p.id for p in g.members] for g in groups},
        'matches': [m.to_dict() for m in matches],
    })


@app.route('/api/playoffs/generate', methods=['POST'])
def api_generate_playoffs():
    """Seed the playoff bracket from current standings, keeping the season matches."""
    with _data_lock():
        settings = load_current_settings()
        participants = load_participants()
        groups, matches, counters = load_event(participants)
        season_matches = [m for m in matches if m.round == 0]
        tables = calculate_group_standings(
            _default_groups(participants, groups), season_matches, counters, settings['extended_tiebreaks']
        )
        bracket = seed_playoffs(
            tables,
            settings['qualifiers_per_group'],
            settings['bracket_has_bronze_match'],
            settings['playoff_placement'],
            total_participants=len(participants),
        )
        save_event(groups, season_matches + bracket.matches, counters)
    app.logger.info(f'Generated playoffs: {bracket}')
    return jsonify(bracket.to_dict())


@app.route('/api/results', methods=['POST'])
def api_record_result():
    """Record a match result: {round, match_number, winner, score}."""
    data = _json_body()
    round_number = _require_int(data, 'round')
    match_number = _require_int(data, 'match_number')
    with _data_lock():
        settings = load_current_settings()
        participants = load_participants()
        groups, matches, counters = load_event(participants)
        engine = AdvancementEngine(matches, winner_change_policy=settings['winner_change_policy'])
        match = engine.record_result(round_number, match_number, data.get('winner'), data.get('score'))
        save_event(groups, engine.matches, counters)
    return jsonify({'success': True, 'match': match.to_dict()})


@app.route('/api/matches/status', methods=['POST'])
def api_set_match_status():
    data = _json_body()
    round_number = _require_int(data, 'round')
    match_number = _require_int(data, 'match_number')
    status = data.get('status')
    with _data_lock():
        participants = load_participants()
        groups, matches, counters = load_event(participants)
        engine = AdvancementEngine(matches)
        try:
            match = engine.set_status(round_number, match_number, status)
        except ValueError as e:
            raise BadRequest(f'Unknown status: {status}') from e
        save_event(groups, engine.matches, counters)
    return jsonify({'success': True, 'match': match.to_dict()})


@app.route('/api/counters', methods=['POST'])
def api_add_counter():
    """Add a card or other event count: {participant_id, category, value}."""
    data = _json_body()
    try:
        category = StatCategory(data.get('category'))
    except ValueError as e:
        raise BadRequest(f"Unknown category: {data.get('category')}") from e
    value = data.get('value', 1)
    if isinstance(value, bool) or not isinstance(value, int):
        raise BadRequest('value must be an integer')
    with _data_lock():
        participants = load_participants()
        if participants.get(data.get('participant_id')) is None:
            raise BadRequest(f"Unknown participant: {data.get('participant_id')}")
        groups, matches, counters = load_event(participants)
        counters.append(AuxiliaryCounter(data['participant_id'], category, value))
        save_event(groups, matches, counters)
    return jsonify({'success': True, 'count': len(counters)})


@app.route('/api/standings', methods=['GET'])
def api_standings():
    settings = load_current_settings()
    participants = load_participants()
    groups, matches, counters = load_event(participants)
    tables = calculate_group_standings(
        _default_groups(participants, groups), matches, counters, settings['extended_tiebreaks']
    )
    return jsonify({
        'groups': {number: [row.to_dict() for row in rows] for number, rows in tables.items()},
        'all': [row.to_dict() for row in all_groups_view(tables)],
    })


@app.route('/api/rounds/<int:round_number>/complete', methods=['GET'])
def api_round_complete(round_number):
    participants = load_participants()
    _, matches, _ = load_event(participants)
    engine = AdvancementEngine(matches)
    champion = engine.champion()
    return jsonify({
        'round': round_number,
        'name': get_round_name(round_number, engine.total_rounds) if round_number <= engine.total_rounds else None,
        'complete': engine.is_round_complete(round_number),
        'champion': champion.id if champion else None,
    })


if __name__ == '__main__':
    app.run(debug=True, port=5000)
