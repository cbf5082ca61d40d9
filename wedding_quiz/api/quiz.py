from flask import Blueprint, current_app, jsonify, request

from wedding_quiz.services.quiz import presence, scoring, standings
from wedding_quiz.services.quiz.errors import InvalidRequest

quiz = Blueprint('quiz', __name__)


def _int_arg(name, default=None, minimum=None):
    raw = request.args.get(name)
    if raw is None or raw == '':
        if default is None:
            raise InvalidRequest(f'{name} is required')
        return default
    try:
        value = int(raw)
    except ValueError:
        raise InvalidRequest(f'{name} must be an integer')
    if minimum is not None and value < minimum:
        raise InvalidRequest(f'{name} must be at least {minimum}')
    return value


@quiz.route('/scoring', methods=['POST'])
def submit_answer():
    data = request.get_json(silent=True) or {}
    line_id = data.get('user_line_id')
    question_id = data.get('question_id')
    if not line_id or question_id is None:
        return jsonify({'success': False, 'error': 'user_line_id and question_id are required'}), 400
    try:
        question_id = int(question_id)
    except (TypeError, ValueError):
        return jsonify({'success': False, 'error': 'question_id must be an integer'}), 400

    result = scoring.submit_answer(
        line_id,
        question_id,
        data.get('selected_answer'),
        data.get('answer_time'),
        data.get('is_timeout', False),
    )
    final = result['score_details']['final_score']
    return jsonify({
        'success': True,
        'message': f'{final:+d} points',
        'score_details': result['score_details'],
        'answer_record': result['record'],
    })


@quiz.route('/scoring', methods=['GET'])
def question_statistics():
    question_id = _int_arg('question_id')
    return jsonify({'success': True, 'analysis': scoring.question_statistics(question_id)})


@quiz.route('/heartbeat', methods=['POST'])
def heartbeat():
    data = request.get_json(silent=True) or {}
    user = presence.heartbeat(data.get('lineId'), data.get('displayName'))
    return jsonify({
        'success': True,
        'interval': int(current_app.config.get('HEARTBEAT_INTERVAL_SEC', 30)),
        'user': user.to_dict(),
    })


@quiz.route('/heartbeat', methods=['DELETE'])
def leave():
    data = request.get_json(silent=True) or {}
    presence.leave(data.get('lineId'))
    return jsonify({'success': True})


@quiz.route('/heartbeat', methods=['GET'])
def presence_summary():
    return jsonify({'success': True, **presence.summary()})


@quiz.route('/leaderboard', methods=['GET'])
def leaderboard():
    limit = _int_arg('limit', current_app.config.get('LEADERBOARD_LIMIT', 50), minimum=1)
    return jsonify({'success': True, 'leaderboard': standings.leaderboard(limit)})


@quiz.route('/score-history', methods=['GET'])
def score_history():
    line_id = request.args.get('user_line_id')
    if not line_id:
        raise InvalidRequest('user_line_id is required')
    history = standings.score_history(
        line_id,
        limit=_int_arg('limit', 50, minimum=1),
        offset=_int_arg('offset', 0, minimum=0),
    )
    return jsonify({'success': True, **history})
