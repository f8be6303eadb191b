from __future__ import annotations

from tutor.curriculum_store import CurriculumStore
from tutor.schemas import ActiveQuiz, Level, LevelStatus, ViewMode

MAX_QUIZ_ATTEMPTS = 3


class LessonFlow:
    """
    idle -> lesson -> quiz -> idle state machine for one learner.

    Guards fail silently: callers are UI event handlers whose own guards
    already prevent invalid transitions.
    """

    def __init__(self, store: CurriculumStore) -> None:
        self.store = store
        self.view_mode: ViewMode = ViewMode.idle
        self.active_lesson_id: int | None = None
        self.active_quiz: ActiveQuiz | None = None

    def clear(self) -> None:
        self.view_mode = ViewMode.idle
        self.active_lesson_id = None
        self.active_quiz = None

    def get_active_lesson(self) -> Level | None:
        if self.active_lesson_id is None:
            return None
        return self.store.get_level(self.active_lesson_id)

    def start_lesson(self, level_id: int) -> None:
        level = self.store.get_level(level_id)
        if level is None or level.status == LevelStatus.locked:
            return
        self.active_lesson_id = level_id
        self.view_mode = ViewMode.lesson
        self.active_quiz = None

    def switch_to_quiz(self) -> None:
        level = self.get_active_lesson()
        if level is None or level.quiz is None:
            return
        self.active_quiz = _new_active_quiz(level)
        self.view_mode = ViewMode.quiz

    def start_quiz(self, level_id: int) -> None:
        level = self.store.get_level(level_id)
        if level is None or level.status == LevelStatus.locked or level.quiz is None:
            return
        self.active_lesson_id = level_id
        self.active_quiz = _new_active_quiz(level)
        self.view_mode = ViewMode.quiz

    def reset_quiz(self) -> None:
        # An active quiz only exists in quiz mode.
        self.active_quiz = None
        if self.view_mode == ViewMode.quiz:
            self.view_mode = ViewMode.lesson if self.active_lesson_id is not None else ViewMode.idle

    def answer_quiz(self, answer_index: int) -> bool:
        quiz = self.active_quiz
        if quiz is None:
            return False
        # A second answer overwrites the first and counts as another attempt.
        is_correct = answer_index == quiz.quiz.correctAnswer
        quiz.selectedAnswer = answer_index
        quiz.isCorrect = is_correct
        quiz.attempts += 1
        quiz.showExplanation = True
        return is_correct

    def can_retry(self) -> bool:
        quiz = self.active_quiz
        if quiz is None or quiz.isCorrect is None:
            return False
        return not quiz.isCorrect and quiz.attempts < MAX_QUIZ_ATTEMPTS

    def retry_quiz(self) -> None:
        if not self.can_retry():
            return
        level_id = self.active_quiz.levelId
        self.store.increment_quiz_attempts(level_id)
        self.start_lesson(level_id)

    def review_lesson(self) -> None:
        if self.active_quiz is None:
            return
        self.start_lesson(self.active_quiz.levelId)


def _new_active_quiz(level: Level) -> ActiveQuiz:
    return ActiveQuiz(
        levelId=level.id,
        quiz=level.quiz,
        selectedAnswer=None,
        isCorrect=None,
        attempts=level.quizAttempts,
        showExplanation=False,
    )
