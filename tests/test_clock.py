from wedding_quiz.services.quiz import clock


def test_remaining_counts_preroll_and_answer_window():
    start = 1000.0
    # 5s pre-roll + 15s answer window, 4s in
    assert clock.remaining_ms(start, 5, 15, current=start + 4) == 16000


def test_remaining_never_negative():
    start = 1000.0
    assert clock.remaining_ms(start, 0, 15, current=start + 60) == 0


def test_remaining_is_zero_without_start_time():
    assert clock.remaining_ms(None, 5, 15, current=2000.0) == 0


def test_remaining_frozen_while_paused():
    start = 1000.0
    paused_at = start + 3
    early = clock.remaining_ms(start, 0, 15, is_paused=True, paused_at=paused_at, current=start + 5)
    late = clock.remaining_ms(start, 0, 15, is_paused=True, paused_at=paused_at, current=start + 500)
    assert early == late == 12000


def test_answer_elapsed_is_negative_during_preroll():
    start = 1000.0
    assert clock.answer_elapsed_ms(start, 5, start + 2) == -3000
    assert clock.answer_elapsed_ms(start, 5, start + 7) == 2000


def test_window_ms():
    assert clock.window_ms(3, 15) == 18000
    assert clock.window_ms(None, 15) == 15000
