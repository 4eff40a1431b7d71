import time
from datetime import date

import pytest

from conftest import make_config, make_questions

from exam_app.core.errors import GenerationFailure, InvariantViolation, SessionNotFoundError
from exam_app.core.models import QuizMode, SessionPhase
from exam_app.core.question_provider import StaticQuestionProvider
from exam_app.core.quiz_manager import QuizManager
from exam_app.core.services.history_repository import InMemoryHistoryRepository


class RecordingRepository(InMemoryHistoryRepository):
    def __init__(self) -> None:
        super().__init__()
        self.saved = []

    def save_result(self, result, exam_name, subject_name, user_id, timestamp=None):
        self.saved.append((result, exam_name, subject_name, user_id))
        return super().save_result(result, exam_name, subject_name, user_id, timestamp)


class BrokenRepository:
    def save_result(self, result, exam_name, subject_name, user_id):
        raise ConnectionError("database unavailable")

    def get_history(self, user_id):
        raise ConnectionError("database unavailable")


class FlakyProvider:
    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0

    def generate_questions(self, config, preferred_topics=()):
        self.calls += 1
        if self.calls <= self.failures:
            raise TimeoutError("quota exceeded")
        return make_questions(config.question_count)


@pytest.fixture
def repository():
    return RecordingRepository()


@pytest.fixture
def manager(repository):
    quiz_manager = QuizManager(
        StaticQuestionProvider(make_questions(10)),
        repository,
        auto_tick=False,
    )
    yield quiz_manager
    quiz_manager.shutdown()


def _finish(manager, session_id, answers):
    for answer in answers:
        if answer is not None:
            manager.select_option(session_id, answer)
        manager.advance(session_id)


def test_start_session_becomes_active(manager):
    session_id = manager.start_session(make_config(), user_id="u1")
    snapshot = manager.get_snapshot(session_id)
    assert snapshot.phase is SessionPhase.ACTIVE
    assert snapshot.total_questions == 5
    assert snapshot.time_remaining == 60


def test_completed_session_is_persisted_once(manager, repository):
    session_id = manager.start_session(make_config(), user_id="u1")
    _finish(manager, session_id, [0, 1, 2, 3, None])
    manager.flush_pending_writes()

    result = manager.get_result(session_id)
    assert result.player_one.score == 4
    assert len(repository.saved) == 1
    saved_result, exam, subject, user_id = repository.saved[0]
    assert saved_result is result
    assert (exam, subject, user_id) == ("IBPS PO", "Quantitative Aptitude", "u1")

    history = manager.get_history("u1")
    assert len(history) == 1
    assert history[0].accuracy == pytest.approx(80.0)


@pytest.mark.parametrize("advances", [0, 1, 3])
def test_cancel_never_persists_or_produces_result(manager, repository, advances):
    session_id = manager.start_session(make_config(), user_id="u1")
    for _ in range(advances):
        manager.advance(session_id)
    snapshot = manager.cancel_session(session_id)
    manager.flush_pending_writes()

    assert snapshot.phase is SessionPhase.CANCELLED
    assert repository.saved == []
    with pytest.raises(InvariantViolation):
        manager.get_result(session_id)


def test_result_not_available_while_active(manager):
    session_id = manager.start_session(make_config())
    with pytest.raises(InvariantViolation):
        manager.get_result(session_id)


def test_unknown_session_raises(manager):
    with pytest.raises(SessionNotFoundError):
        manager.get_snapshot("missing")
    with pytest.raises(KeyError):
        manager.advance("missing")


def test_manual_ticks_force_advancement():
    quiz_manager = QuizManager(
        StaticQuestionProvider(make_questions(5)),
        InMemoryHistoryRepository(),
        turn_duration=3,
        auto_tick=False,
    )
    session_id = quiz_manager.start_session(make_config(QuizMode.VERSUS))
    for _ in range(3):
        assert quiz_manager.tick(session_id) is True
    snapshot = quiz_manager.get_snapshot(session_id)
    assert snapshot.active_party == 2
    assert snapshot.elapsed_seconds == (3, 0)
    quiz_manager.shutdown()


def test_tick_on_finished_session_reports_nothing_to_do(manager):
    session_id = manager.start_session(make_config())
    _finish(manager, session_id, [None] * 5)
    assert manager.tick(session_id) is False
    assert manager.tick("missing") is False


def test_generation_failure_is_terminal_until_retry(repository):
    provider = FlakyProvider(failures=1)
    quiz_manager = QuizManager(provider, repository, auto_tick=False)
    session_id = quiz_manager.start_session(make_config())

    snapshot = quiz_manager.get_snapshot(session_id)
    assert snapshot.phase is SessionPhase.FAILED
    assert snapshot.can_retry
    assert "quota exceeded" in snapshot.failure_message
    assert provider.calls == 1

    with pytest.raises(InvariantViolation):
        quiz_manager.advance(session_id)

    snapshot = quiz_manager.retry_session(session_id)
    assert snapshot.phase is SessionPhase.ACTIVE
    assert provider.calls == 2
    quiz_manager.shutdown()


def test_empty_provider_result_fails_session(repository):
    quiz_manager = QuizManager(StaticQuestionProvider([]), repository, auto_tick=False)
    session_id = quiz_manager.start_session(make_config())
    assert quiz_manager.get_snapshot(session_id).phase is SessionPhase.FAILED
    quiz_manager.shutdown()


def test_provider_generation_failure_message_is_kept(repository):
    class Refusing:
        def generate_questions(self, config, preferred_topics=()):
            raise GenerationFailure("No question bank available for 'History'.")

    quiz_manager = QuizManager(Refusing(), repository, auto_tick=False)
    session_id = quiz_manager.start_session(make_config())
    assert quiz_manager.get_snapshot(session_id).failure_message == "No question bank available for 'History'."
    quiz_manager.shutdown()


def test_persistence_failure_does_not_block_completion():
    quiz_manager = QuizManager(StaticQuestionProvider(make_questions(5)), BrokenRepository(), auto_tick=False)
    session_id = quiz_manager.start_session(make_config(), user_id="u1")
    _finish(quiz_manager, session_id, [0] * 5)
    quiz_manager.flush_pending_writes()

    assert quiz_manager.get_snapshot(session_id).phase is SessionPhase.DONE
    assert quiz_manager.get_result(session_id).player_one.score == 2
    assert quiz_manager.get_history("u1") == []
    assert quiz_manager.get_dashboard("u1").stats.total_quizzes == 0
    quiz_manager.shutdown()


def test_dashboard_reads_saved_history(manager):
    for _ in range(2):
        session_id = manager.start_session(make_config(), user_id="u1")
        _finish(manager, session_id, [0, 1, 2, 3, 0])
    manager.flush_pending_writes()

    summary = manager.get_dashboard("u1", today=date.today())
    assert summary.stats.total_quizzes == 2
    assert summary.stats.xp == 10 * 2 + 5 * (5 + 5)
    assert summary.streak == 1
    assert manager.get_dashboard("someone-else").stats.total_quizzes == 0


def test_discard_session_forgets_it(manager):
    session_id = manager.start_session(make_config())
    manager.discard_session(session_id)
    assert session_id not in manager.get_session_ids()


def test_ticker_runs_while_active_and_stops_on_cancel(repository):
    quiz_manager = QuizManager(
        StaticQuestionProvider(make_questions(5)),
        repository,
        tick_interval=0.01,
    )
    session_id = quiz_manager.start_session(make_config())
    assert quiz_manager.is_ticking(session_id)

    deadline = time.monotonic() + 2
    while quiz_manager.get_snapshot(session_id).elapsed_seconds[0] < 3 and time.monotonic() < deadline:
        time.sleep(0.01)
    assert quiz_manager.get_snapshot(session_id).elapsed_seconds[0] >= 3

    quiz_manager.cancel_session(session_id)
    assert not quiz_manager.is_ticking(session_id)
    quiz_manager.shutdown()
    assert repository.saved == []


def test_ticker_finishes_session_on_timeout(repository):
    quiz_manager = QuizManager(
        StaticQuestionProvider(make_questions(5)),
        repository,
        turn_duration=1,
        tick_interval=0.01,
    )
    session_id = quiz_manager.start_session(make_config(), user_id="u1")

    deadline = time.monotonic() + 5
    while quiz_manager.get_snapshot(session_id).phase is SessionPhase.ACTIVE and time.monotonic() < deadline:
        time.sleep(0.01)

    assert quiz_manager.get_snapshot(session_id).phase is SessionPhase.DONE
    assert not quiz_manager.is_ticking(session_id)
    quiz_manager.flush_pending_writes()
    assert len(repository.saved) == 1
    assert repository.saved[0][0].player_one.time_taken == 5
    quiz_manager.shutdown()


def test_old_finished_sessions_are_evicted_when_new_ones_start(repository):
    quiz_manager = QuizManager(
        StaticQuestionProvider(make_questions(5)),
        repository,
        auto_tick=False,
        retained_finished_sessions=2,
    )
    in_progress = quiz_manager.start_session(make_config())
    finished = []
    for _ in range(3):
        session_id = quiz_manager.start_session(make_config())
        _finish(quiz_manager, session_id, [None] * 5)
        finished.append(session_id)
    for _ in range(2):
        session_id = quiz_manager.start_session(make_config())
        quiz_manager.cancel_session(session_id)
        finished.append(session_id)

    newest = quiz_manager.start_session(make_config())

    assert set(quiz_manager.get_session_ids()) == {in_progress, finished[-2], finished[-1], newest}
    with pytest.raises(SessionNotFoundError):
        quiz_manager.get_result(finished[0])
    quiz_manager.shutdown()


def test_completed_writes_are_released(manager, repository):
    for _ in range(3):
        session_id = manager.start_session(make_config(), user_id="u1")
        _finish(manager, session_id, [None] * 5)
    manager.flush_pending_writes()

    assert manager.get_pending_write_count() == 0
    assert len(repository.saved) == 3


def test_preferred_topics_reach_provider_filtered_to_subject(repository):
    seen = []

    class Recording:
        def generate_questions(self, config, preferred_topics=()):
            seen.append(tuple(preferred_topics))
            return make_questions(config.question_count)

    quiz_manager = QuizManager(Recording(), repository, auto_tick=False)
    quiz_manager.start_session(make_config(), preferred_topics=["Syllogism", "Algebra", "Algebra"])
    assert seen == [("Algebra",)]
    quiz_manager.shutdown()
