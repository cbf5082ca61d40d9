from flask import Blueprint, jsonify, request

from wedding_quiz.services.quiz.control import Command, apply_command
from wedding_quiz.services.quiz.errors import InvalidRequest
from wedding_quiz.services.quiz.state import snapshot

game = Blueprint('game', __name__)


@game.route('/control', methods=['POST'])
def control():
    """Apply an admin control command (start/pause/next/reset ...)."""
    data = request.get_json(silent=True) or {}
    if not data.get('action'):
        raise InvalidRequest('action is required')
    command = Command.parse(data.get('action'))
    result = apply_command(
        command,
        admin_id=data.get('adminId') or data.get('adminLineId'),
        question_id=data.get('questionId'),
        settings=data.get('settings'),
    )
    return jsonify({
        'success': True,
        'action': result['action'],
        'details': result['details'],
        'noop': result['noop'],
        'state': result['state'],
    })


@game.route('/state', methods=['GET'])
def get_game_state():
    return jsonify({'success': True, 'gameState': snapshot()})
