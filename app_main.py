"""Application entry point for the ExamArena quiz server."""

from __future__ import annotations

import argparse
from pathlib import Path

from exam_app.constants.about import APP_NAME
from exam_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from exam_app.core.question_provider import QuestionBankProvider
from exam_app.core.quiz_manager import QuizManager
from exam_app.core.services.history_repository import InMemoryHistoryRepository
from exam_app.server.api_server import start_api_server
from exam_app.utils.logging_config import configure_logging

_DEFAULT_BANK_DIRECTORY = Path(__file__).resolve().parent / "question_banks"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=f"Run the {APP_NAME} quiz server.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument(
        "--question-bank",
        type=Path,
        default=_DEFAULT_BANK_DIRECTORY,
        help="Directory holding per-subject question bank files (.txt or .json).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Initialize logging, wire the quiz manager and serve the API until interrupted."""
    args = _parse_args(argv)
    logger = configure_logging()
    logger.info("Starting %s…", APP_NAME)

    if not args.question_bank.is_dir():
        logger.warning("Question bank directory %s does not exist; quizzes will fail to load.", args.question_bank)

    quiz_manager = QuizManager(
        question_provider=QuestionBankProvider(args.question_bank),
        history_repository=InMemoryHistoryRepository(),
    )
    server_thread = start_api_server(quiz_manager=quiz_manager, host=args.host, port=args.port)
    logger.info("API available at http://%s:%s/", args.host, args.port)
    try:
        server_thread.join()
    except KeyboardInterrupt:
        logger.info("Shutting down…")
    finally:
        quiz_manager.shutdown()


if __name__ == "__main__":
    main()
