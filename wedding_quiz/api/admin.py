from flask import Blueprint, jsonify, request

from wedding_quiz.services.quiz import standings
from wedding_quiz.services.quiz.errors import InvalidRequest

admin = Blueprint('admin', __name__)


@admin.route('/scores', methods=['GET'])
def list_scores():
    kind = request.args.get('type', 'users')
    if kind == 'users':
        return jsonify({'success': True, 'users': standings.leaderboard()})
    if kind == 'adjustments':
        return jsonify({'success': True, 'adjustments': standings.recent_adjustments()})
    raise InvalidRequest(f'Unknown type: {kind}')


@admin.route('/scores', methods=['POST'])
def adjust_score():
    data = request.get_json(silent=True) or {}
    result = standings.adjust_score(
        data.get('adminId') or data.get('admin_id'),
        data.get('user_line_id'),
        data.get('adjustment_score'),
        data.get('reason'),
    )
    return jsonify({'success': True, **result}), 201
