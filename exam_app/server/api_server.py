"""FastAPI server that exposes quiz sessions and the history dashboard."""

from __future__ import annotations

from datetime import date
from threading import Thread

from fastapi import Depends, FastAPI, HTTPException, Response
from pydantic import BaseModel, Field
import uvicorn

from exam_app.constants.about import APP_NAME, APP_VERSION
from exam_app.constants.catalog import EXAM_CATEGORIES, SYLLABUS
from exam_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from exam_app.constants.quiz_constants import (
    DEFAULT_QUESTION_COUNT,
    MAX_QUESTION_COUNT,
    MIN_QUESTION_COUNT,
    TURN_DURATION_SECONDS,
)
from exam_app.core.errors import InvariantViolation, SessionNotFoundError
from exam_app.core.models import (
    Difficulty,
    HistoryRecord,
    PlayerResult,
    Question,
    QuizMode,
    QuizResult,
    SessionSnapshot,
)
from exam_app.core.quiz_config import build_configuration
from exam_app.core.quiz_manager import QuizManager
from exam_app.core.services.history_stats import DashboardSummary
from exam_app.core.services.scoreboard import determine_winner


class SessionPayload(BaseModel):
    """Payload schema for starting a quiz."""

    exam: str
    subject: str
    topics: list[str] = Field(default_factory=list)
    question_count: int = DEFAULT_QUESTION_COUNT
    difficulty: Difficulty = Difficulty.MEDIUM
    mode: QuizMode = QuizMode.SOLO
    player_one_name: str | None = None
    player_two_name: str | None = None
    allow_general_syllabus: bool = True
    user_id: str | None = None
    preferred_topics: list[str] = Field(default_factory=list)


class SelectPayload(BaseModel):
    """Payload schema for choosing an option."""

    option_index: int


def _snapshot_to_dict(snapshot: SessionSnapshot) -> dict[str, object]:
    return {
        "session_id": snapshot.session_id,
        "phase": snapshot.phase.value,
        "mode": snapshot.mode.value,
        "total_questions": snapshot.total_questions,
        "current_index": snapshot.current_index,
        "active_party": snapshot.active_party,
        "active_party_name": snapshot.active_party_name,
        "time_remaining": snapshot.time_remaining,
        "elapsed_seconds": list(snapshot.elapsed_seconds),
        "current_selection": snapshot.current_selection,
        "progress_percent": snapshot.progress_percent,
        "question_id": snapshot.question_id,
        "question_text": snapshot.question_text,
        "options": list(snapshot.options),
        "failure_message": snapshot.failure_message,
        "can_retry": snapshot.can_retry,
    }


def _question_to_dict(question: Question) -> dict[str, object]:
    return {
        "id": question.id,
        "text": question.text,
        "options": list(question.options),
        "correct_index": question.correct_index,
        "explanation": {
            "concept": question.explanation.concept,
            "steps": list(question.explanation.steps),
            "tricks": list(question.explanation.tricks),
            "visual_aid": question.explanation.visual_aid,
        },
    }


def _player_to_dict(player: PlayerResult) -> dict[str, object]:
    return {
        "name": player.name,
        "score": player.score,
        "accuracy": player.accuracy,
        "time_taken": player.time_taken,
        "answers": [
            {
                "question_id": answer.question_id,
                "selected_option": answer.selected_option,
                "is_correct": answer.is_correct,
            }
            for answer in player.answers
        ],
    }


def _result_to_dict(result: QuizResult) -> dict[str, object]:
    winner = determine_winner(result)
    return {
        "mode": result.mode.value,
        "total_questions": result.total_questions,
        "questions": [_question_to_dict(question) for question in result.questions],
        "player_one": _player_to_dict(result.player_one),
        "player_two": _player_to_dict(result.player_two) if result.player_two else None,
        "winner": winner.name if winner else None,
    }


def _record_to_dict(record: HistoryRecord) -> dict[str, object]:
    return {
        "timestamp": record.timestamp.isoformat(),
        "exam_name": record.exam_name,
        "subject_name": record.subject_name,
        "score": record.score,
        "accuracy": record.accuracy,
        "total_questions": record.total_questions,
    }


def _dashboard_to_dict(summary: DashboardSummary) -> dict[str, object]:
    return {
        "total_quizzes": summary.stats.total_quizzes,
        "avg_accuracy": summary.stats.avg_accuracy,
        "xp": summary.stats.xp,
        "level": summary.stats.level,
        "streak": summary.streak,
        "daily_accuracy": [
            {
                "date": point.day.isoformat(),
                "label": point.label,
                "accuracy": point.accuracy,
                "quiz_count": point.quiz_count,
            }
            for point in summary.daily_accuracy
        ],
        "recent": [_record_to_dict(record) for record in summary.recent],
    }


def _get_quiz_manager_dependency(quiz_manager: QuizManager):
    def dependency() -> QuizManager:
        return quiz_manager

    return dependency


def create_api_app(quiz_manager: QuizManager) -> FastAPI:
    """Create a FastAPI application wired to the provided quiz manager."""
    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION)
    quiz_manager_dep = _get_quiz_manager_dependency(quiz_manager)

    def run(action):
        try:
            return action()
        except SessionNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except InvariantViolation as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc

    @app.get("/catalog")
    def get_catalog() -> dict[str, object]:
        return {
            "exam_categories": [
                {"id": category.id, "name": category.name, "exams": list(category.exams)}
                for category in EXAM_CATEGORIES
            ],
            "syllabus": [
                {"id": topic.id, "name": topic.name, "subtopics": list(topic.subtopics)}
                for topic in SYLLABUS
            ],
            "question_count": {"min": MIN_QUESTION_COUNT, "max": MAX_QUESTION_COUNT},
            "turn_duration_seconds": TURN_DURATION_SECONDS,
        }

    @app.post("/sessions", status_code=201)
    def start_session(
        payload: SessionPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        def action() -> SessionSnapshot:
            config = build_configuration(
                exam=payload.exam,
                subject=payload.subject,
                topics=payload.topics,
                question_count=payload.question_count,
                difficulty=payload.difficulty,
                mode=payload.mode,
                player_one_name=payload.player_one_name,
                player_two_name=payload.player_two_name,
                allow_general_syllabus=payload.allow_general_syllabus,
            )
            session_id = manager.start_session(
                config,
                user_id=payload.user_id,
                preferred_topics=payload.preferred_topics,
            )
            return manager.get_snapshot(session_id)

        return _snapshot_to_dict(run(action))

    @app.get("/sessions/{session_id}")
    def get_session(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return _snapshot_to_dict(run(lambda: manager.get_snapshot(session_id)))

    @app.post("/sessions/{session_id}/select")
    def select_option(
        session_id: str,
        payload: SelectPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return _snapshot_to_dict(run(lambda: manager.select_option(session_id, payload.option_index)))

    @app.post("/sessions/{session_id}/advance")
    def advance(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return _snapshot_to_dict(run(lambda: manager.advance(session_id)))

    @app.post("/sessions/{session_id}/back")
    def go_back(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return _snapshot_to_dict(run(lambda: manager.go_back(session_id)))

    @app.post("/sessions/{session_id}/retry")
    def retry(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return _snapshot_to_dict(run(lambda: manager.retry_session(session_id)))

    @app.post("/sessions/{session_id}/cancel")
    def cancel(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return _snapshot_to_dict(run(lambda: manager.cancel_session(session_id)))

    @app.delete("/sessions/{session_id}", status_code=204)
    def discard(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> Response:
        run(lambda: manager.discard_session(session_id))
        return Response(status_code=204)

    @app.get("/sessions/{session_id}/result")
    def get_result(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return _result_to_dict(run(lambda: manager.get_result(session_id)))

    @app.get("/users/{user_id}/history")
    def get_history(user_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> list[dict[str, object]]:
        return [_record_to_dict(record) for record in manager.get_history(user_id)]

    @app.get("/users/{user_id}/dashboard")
    def get_dashboard(
        user_id: str,
        today: date | None = None,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return _dashboard_to_dict(manager.get_dashboard(user_id, today=today))

    return app


def start_api_server(
    quiz_manager: QuizManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(quiz_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="ExamApiServer", daemon=True)
    thread.start()
    return thread
