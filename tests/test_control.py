from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from wedding_quiz import db
from wedding_quiz.models import AdminAction, AnswerRecord, GameState, ScoreAdjustment, User
from wedding_quiz.services.quiz import control as control_service
from wedding_quiz.services.quiz.control import Command


def state_of(client):
    return client.get('/api/game/state').get_json()['gameState']


def seed_ordering_scenario(make_question):
    # display_order [1, 1, 2] with ids 10, 11, 12
    make_question(id=10, display_order=1)
    make_question(id=11, display_order=1)
    make_question(id=12, display_order=2)


def test_initial_state_is_idle(client):
    state = state_of(client)
    assert state['status'] == 'IDLE'
    assert state['current_question_id'] is None
    assert state['time_remaining'] == 0


def test_unauthorized_admin_is_rejected_without_mutation(client, control, make_question):
    make_question()
    res = control('start_game', admin_id='U-intruder')
    assert res.status_code == 403
    assert res.get_json()['success'] is False
    assert state_of(client)['status'] == 'IDLE'
    assert AdminAction.query.count() == 0


def test_unknown_action_is_rejected(control):
    res = control('explode')
    assert res.status_code == 400
    assert 'Unknown action' in res.get_json()['error']


def test_every_command_has_a_handler():
    assert set(control_service.HANDLERS) == set(Command)


def test_start_game_then_first_question(client, control, make_question, frozen_clock):
    seed_ordering_scenario(make_question)
    res = control('start_game')
    assert res.status_code == 200
    assert res.get_json()['state']['status'] == 'WAITING_FOR_PLAYERS'
    assert res.get_json()['state']['total_questions'] == 3

    res = control('start_first_question')
    body = res.get_json()
    assert body['success'] is True
    assert body['details'] == {'question_id': 10}
    state = body['state']
    assert state['status'] == 'QUESTION_ACTIVE'
    assert state['current_question_id'] == 10
    assert state['question_start_time'] == frozen_clock.current
    assert state['time_remaining'] == 15000
    assert 'correct_answer' not in state['current_question']


def test_start_game_twice_is_an_error(control, make_question):
    make_question()
    assert control('start_game').status_code == 200
    res = control('start_game')
    assert res.status_code == 409
    assert res.get_json()['code'] == 'invalid_transition'


def test_start_first_question_without_questions(control):
    control('start_game')
    res = control('start_first_question')
    assert res.status_code == 409
    assert res.get_json()['error'] == 'No questions available'


def test_next_question_walks_display_order_then_ends(client, control, make_question):
    seed_ordering_scenario(make_question)
    control('start_game')
    control('start_first_question')

    res = control('next_question').get_json()
    assert res['details']['next_question_id'] == 11
    assert res['state']['completed_questions'] == 1

    res = control('next_question').get_json()
    assert res['details']['next_question_id'] == 12
    assert res['state']['completed_questions'] == 2
    assert res['state']['has_next_question'] is False

    res = control('next_question').get_json()
    assert res['details']['game_ended'] is True
    assert res['state']['status'] == 'ENDED'
    assert res['state']['current_question_id'] is None
    assert res['state']['completed_questions'] == 2

    # Idempotent once ended: reported as a no-op, not an error
    res = control('next_question')
    assert res.status_code == 200
    assert res.get_json()['noop'] is True
    assert state_of(client)['status'] == 'ENDED'
    ended_audits = [a for a in AdminAction.query.all() if (a.details or {}).get('game_ended')]
    assert len(ended_audits) == 1


def test_next_question_skips_inactive_and_other_sets(control, make_question):
    make_question(id=1, display_order=1)
    make_question(id=2, display_order=2, is_active=False)
    make_question(id=3, display_order=3, category='other')
    make_question(id=4, display_order=4)
    control('start_game')
    control('start_first_question')
    res = control('next_question').get_json()
    assert res['details']['next_question_id'] == 4


def test_next_question_requires_live_question(control, make_question):
    make_question()
    control('start_game')
    res = control('next_question')
    assert res.status_code == 409


def test_pause_freezes_and_resume_restarts_window(client, control, make_question, frozen_clock):
    make_question(time_limit=5)
    control('start_game')
    control('start_first_question')

    frozen_clock.advance(8)
    res = control('pause_game').get_json()
    assert res['state']['status'] == 'PAUSED'
    assert res['state']['time_remaining'] == 12000

    frozen_clock.advance(30)
    assert state_of(client)['time_remaining'] == 12000

    # Pausing again is a no-op
    again = control('pause_game').get_json()
    assert again['noop'] is True

    # Resume restarts the full window rather than continuing the frozen countdown
    res = control('resume_game').get_json()
    assert res['state']['status'] == 'QUESTION_ACTIVE'
    assert res['state']['question_start_time'] == frozen_clock.current
    assert res['state']['time_remaining'] == 20000


def test_resume_when_not_paused_is_noop(control, make_question):
    make_question()
    control('start_game')
    control('start_first_question')
    res = control('resume_game').get_json()
    assert res['noop'] is True
    assert res['state']['status'] == 'QUESTION_ACTIVE'


def test_pause_without_question_is_invalid(control):
    control('start_game')
    assert control('pause_game').status_code == 409


def test_next_question_from_paused_clears_pause(control, make_question):
    make_question(id=1, display_order=1)
    make_question(id=2, display_order=2)
    control('start_game')
    control('start_first_question')
    control('pause_game')
    res = control('next_question').get_json()
    assert res['state']['status'] == 'QUESTION_ACTIVE'
    assert res['state']['is_paused'] is False
    assert res['state']['current_question_id'] == 2


def test_show_rankings_keeps_current_question(control, make_question):
    make_question(id=7)
    control('start_game')
    control('start_first_question')
    res = control('show_rankings').get_json()
    assert res['state']['display_phase'] == 'rankings'
    assert res['state']['current_question_id'] == 7


def test_show_rankings_requires_active_game(control):
    assert control('show_rankings').status_code == 409


def test_next_question_resets_display_phase(control, make_question):
    make_question(id=1, display_order=1)
    make_question(id=2, display_order=2)
    control('start_game')
    control('start_first_question')
    control('show_rankings')
    res = control('next_question').get_json()
    assert res['state']['display_phase'] == 'question'


def test_jump_to_question(control, make_question, frozen_clock):
    make_question(id=1, display_order=1)
    make_question(id=2, display_order=2)
    make_question(id=3, display_order=3, is_active=False)
    control('start_game')
    control('start_first_question')

    frozen_clock.advance(5)
    res = control('jump_to_question', questionId=2).get_json()
    assert res['details']['jumped_to_question_id'] == 2
    assert res['state']['question_start_time'] == frozen_clock.current

    assert control('jump_to_question', questionId=3).status_code == 404
    assert control('jump_to_question', questionId=999).status_code == 404
    assert control('jump_to_question').status_code == 400


def test_end_game_clears_presence(client, control, make_question):
    make_question()
    client.post('/api/quiz/heartbeat', json={'lineId': 'U1'})
    control('start_game')
    control('start_first_question')
    res = control('end_game').get_json()
    assert res['state']['status'] == 'ENDED'
    assert res['state']['current_question_id'] is None
    assert User.query.filter_by(line_id='U1').first().is_in_quiz_page is False


def test_start_game_again_after_end(control, make_question):
    make_question()
    control('start_game')
    control('end_game')
    res = control('start_game')
    assert res.status_code == 200
    assert res.get_json()['state']['status'] == 'WAITING_FOR_PLAYERS'


def test_reset_game_clears_answers_and_scores(client, control, make_question, make_user):
    q = make_question(id=1)
    u = make_user('U1', quiz_score=250)
    db.session.add(AnswerRecord(user_id=u.id, question_id=q.id, selected_answer='B', is_correct=True, score_delta=100))
    db.session.add(ScoreAdjustment(user_id=u.id, admin_line_id='U-admin', adjustment_score=5, reason='bonus'))
    db.session.commit()
    control('start_game')
    control('start_first_question')

    res = control('reset_game').get_json()
    assert res['details']['reset_complete'] is True
    assert res['state']['status'] == 'WAITING_FOR_PLAYERS'
    assert res['state']['completed_questions'] == 0
    assert AnswerRecord.query.count() == 0
    assert ScoreAdjustment.query.count() == 0
    assert all(user.quiz_score == 0 and not user.is_in_quiz_page for user in User.query.all())


def test_update_settings(client, control, make_question):
    make_question(id=1, category='party')
    make_question(id=2, category='party', display_order=2)
    res = control('update_settings', settings={'question_time_limit': 20, 'active_question_set': 'party'})
    assert res.status_code == 200
    state = res.get_json()['state']
    assert state['question_time_limit'] == 20
    assert state['active_question_set'] == 'party'
    assert state['total_questions'] == 2


def test_update_settings_rejects_unknown_fields(client, control):
    res = control('update_settings', settings={'question_time_limit': 20, 'is_active': True})
    assert res.status_code == 400
    assert state_of(client)['question_time_limit'] == 15
    assert control('update_settings', settings={'question_time_limit': -1}).status_code == 400


def test_each_transition_writes_one_audit_record(control, make_question):
    make_question(id=1)
    control('start_game')
    control('start_first_question')
    control('pause_game')
    control('pause_game')  # no-op, not audited
    control('resume_game')
    actions = [a.action_type for a in AdminAction.query.order_by(AdminAction.id).all()]
    assert actions == ['start_game', 'start_first_question', 'pause_game', 'resume_game']
    first_question = AdminAction.query.filter_by(action_type='start_first_question').first()
    assert first_question.admin_id == 'U-admin'
    assert first_question.target_id == '1'
    assert first_question.details == {'question_id': 1}


def test_concurrent_update_rejects_command_and_keeps_state(client, control, make_question, monkeypatch):
    make_question(id=1, display_order=1)
    make_question(id=2, display_order=2)
    control('start_game')
    control('start_first_question')

    original = control_service.HANDLERS[Command.NEXT_QUESTION]

    def racing_next(state, status, now, params):
        # Another writer commits first and bumps the row version
        db.session.execute(text('UPDATE game_state SET version = version + 1 WHERE id = 1'))
        return original(state, status, now, params)

    monkeypatch.setitem(control_service.HANDLERS, Command.NEXT_QUESTION, racing_next)
    audits_before = AdminAction.query.count()
    res = control('next_question')
    assert res.status_code == 409
    assert res.get_json()['code'] == 'concurrent_modification'
    assert AdminAction.query.count() == audits_before
    state = db.session.get(GameState, 1)
    assert state.current_question_id == 1
    assert state.completed_questions == 0


def test_store_failure_rolls_back_command(client, control, make_question, monkeypatch):
    make_question(id=1, display_order=1)
    make_question(id=2, display_order=2)
    control('start_game')
    control('start_first_question')

    def failing_commit(session):
        session.flush()
        raise OperationalError('COMMIT', {}, Exception('database is locked'))

    audits_before = AdminAction.query.count()
    monkeypatch.setattr(type(db.session()), 'commit', failing_commit)
    res = control('next_question')
    monkeypatch.undo()

    assert res.status_code == 503
    assert res.get_json()['code'] == 'store_failure'
    assert res.get_json()['retryable'] is True
    db.session.expire_all()
    assert AdminAction.query.count() == audits_before
    state = db.session.get(GameState, 1)
    assert state.current_question_id == 1
    assert state.completed_questions == 0
    assert state_of(client)['current_question_id'] == 1
