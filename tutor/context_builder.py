from __future__ import annotations

from typing import Any

from tutor.prompts import (
    GREETING_CURRICULUM,
    GREETING_DEFAULT,
    GREETING_LESSON,
    IDLE_INSTRUCTIONS,
    LESSON_INSTRUCTIONS,
    QUIZ_CORRECT_INSTRUCTIONS,
    QUIZ_INCORRECT_INSTRUCTIONS,
    QUIZ_PENDING_INSTRUCTIONS,
    TUTOR_SYSTEM,
)
from tutor.schemas import (
    ActiveQuiz,
    Curriculum,
    LearningContext,
    Level,
    LessonInfo,
    LevelInfo,
    LevelStatus,
    QuizInfo,
    ViewMode,
)

PDF_PROMPT_CHARS = 15_000
QUIZ_PREVIEW_CHARS = 80

_STATUS_MARKERS = {
    LevelStatus.completed: "[done]",
    LevelStatus.active: "[current]",
    LevelStatus.locked: "[locked]",
}


def build_learning_context(
    curriculum: Curriculum | None,
    view_mode: ViewMode,
    active_lesson: Level | None,
    active_quiz: ActiveQuiz | None,
    total_xp: int,
) -> LearningContext | None:
    """
    Snapshot of learner state for the voice agent.

    Returns None when no curriculum is loaded; the agent must not be briefed then.
    Locked levels are included so the agent can describe what lies ahead.
    """
    if curriculum is None:
        return None

    current_lesson = None
    if view_mode == ViewMode.lesson and active_lesson is not None:
        current_lesson = LessonInfo(
            id=active_lesson.id,
            name=active_lesson.name,
            description=active_lesson.description,
            content=active_lesson.content,
            concepts=list(active_lesson.concepts),
        )

    current_quiz = None
    if view_mode == ViewMode.quiz and active_quiz is not None:
        current_quiz = QuizInfo(
            question=active_quiz.quiz.question,
            options=list(active_quiz.quiz.options),
            selectedAnswer=active_quiz.selectedAnswer,
            isCorrect=active_quiz.isCorrect,
            attempts=active_quiz.attempts,
            explanation=active_quiz.quiz.explanation,
        )

    return LearningContext(
        documentId=curriculum.documentId,
        documentName=curriculum.documentName,
        curriculumTitle=curriculum.title,
        totalXp=total_xp,
        maxTotalXp=sum(lvl.maxXp for lvl in curriculum.levels),
        viewMode=view_mode,
        pdfContent=curriculum.pdfContent,
        allLevels=[
            LevelInfo(
                id=lvl.id,
                name=lvl.name,
                description=lvl.description,
                content=lvl.content,
                concepts=list(lvl.concepts),
                status=lvl.status,
                xp=lvl.xp,
                maxXp=lvl.maxXp,
                quiz=lvl.quiz,
            )
            for lvl in curriculum.levels
        ],
        currentLesson=current_lesson,
        currentQuiz=current_quiz,
        completedLevels=[lvl.name for lvl in curriculum.levels if lvl.status == LevelStatus.completed],
    )


def context_fingerprint(ctx: LearningContext | None) -> tuple[Any, ...] | None:
    if ctx is None:
        return None
    lesson_id = ctx.currentLesson.id if ctx.currentLesson else None
    quiz = ctx.currentQuiz
    return (
        ctx.viewMode.value,
        lesson_id,
        quiz.question if quiz else None,
        quiz.selectedAnswer if quiz else None,
        quiz.isCorrect if quiz else None,
    )


class ContextTracker:
    """Remembers the last context pushed to the agent to skip redundant updates."""

    def __init__(self) -> None:
        self._last: tuple[Any, ...] | None = None

    def should_send(self, ctx: LearningContext | None) -> bool:
        key = context_fingerprint(ctx)
        if key is None or key == self._last:
            return False
        self._last = key
        return True

    def reset(self) -> None:
        self._last = None


def _letter(index: int) -> str:
    return chr(ord("A") + index)


def _option_text(options: list[str], index: int) -> str:
    if 0 <= index < len(options):
        return options[index]
    return "?"


def _quiz_lines(quiz: QuizInfo) -> list[str]:
    lines = [f"Question: {quiz.question}", "", "Options:"]
    lines += [f"   {_letter(i)}) {opt}" for i, opt in enumerate(quiz.options)]
    lines += ["", f"Attempts: {quiz.attempts}"]
    if quiz.selectedAnswer is not None:
        lines += [
            "",
            f"The learner answered: {_letter(quiz.selectedAnswer)}) {_option_text(quiz.options, quiz.selectedAnswer)}",
            f"Result: {'CORRECT' if quiz.isCorrect else 'INCORRECT'}",
            f"Explanation of the correct answer: {quiz.explanation}",
        ]
    return lines


def _mode_instructions(ctx: LearningContext) -> str:
    if ctx.viewMode == ViewMode.lesson:
        return LESSON_INSTRUCTIONS
    if ctx.viewMode == ViewMode.quiz:
        quiz = ctx.currentQuiz
        if quiz is None or quiz.selectedAnswer is None:
            return QUIZ_PENDING_INSTRUCTIONS
        return QUIZ_CORRECT_INSTRUCTIONS if quiz.isCorrect else QUIZ_INCORRECT_INSTRUCTIONS
    return IDLE_INSTRUCTIONS


def render_system_prompt(ctx: LearningContext | None) -> str:
    """Full agent prompt: role, learning curve, current lesson/quiz, source text and mode instructions."""
    parts = [TUTOR_SYSTEM]
    if ctx is None:
        return "\n".join(parts)

    parts += [
        "",
        "=== CURRENT LEARNING CONTEXT ===",
        f'Source document: "{ctx.documentName}"',
        f'Learning path: "{ctx.curriculumTitle}"',
        f"Progress: {ctx.totalXp} / {ctx.maxTotalXp} XP",
    ]

    if ctx.allLevels:
        parts += ["", "=== LEARNING CURVE (all chapters) ==="]
        for lvl in ctx.allLevels:
            if lvl.status == LevelStatus.completed:
                xp_info = f"({lvl.xp}/{lvl.maxXp} XP earned)"
            else:
                xp_info = f"({lvl.maxXp} XP available)"
            parts += [
                f"{_STATUS_MARKERS[lvl.status]} Chapter {lvl.id}: {lvl.name} {xp_info}",
                f"   - {lvl.description}",
                f"   - Concepts: {', '.join(lvl.concepts)}",
            ]
            if lvl.status != LevelStatus.locked and lvl.quiz is not None:
                question = lvl.quiz.question
                preview = question[:QUIZ_PREVIEW_CHARS] + ("..." if len(question) > QUIZ_PREVIEW_CHARS else "")
                parts.append(f'   - Quiz: "{preview}"')

    if ctx.currentLesson is not None:
        lesson = ctx.currentLesson
        parts += [
            "",
            "=== LESSON BEING STUDIED ===",
            f"Chapter {lesson.id}: {lesson.name}",
            f"Description: {lesson.description}",
            f"Key concepts: {', '.join(lesson.concepts)}",
            "",
            "FULL LESSON CONTENT:",
            "---",
            lesson.content,
            "---",
        ]

    if ctx.viewMode == ViewMode.quiz and ctx.currentQuiz is not None:
        parts += ["", "=== QUIZ IN PROGRESS ==="] + _quiz_lines(ctx.currentQuiz)

    if ctx.pdfContent:
        truncated = ctx.pdfContent[:PDF_PROMPT_CHARS]
        if len(ctx.pdfContent) > PDF_PROMPT_CHARS:
            truncated += "\n[... document truncated to fit the context limit ...]"
        parts += [
            "",
            "=== SOURCE PDF CONTENT ===",
            "(Use this content to answer the learner's questions about the course)",
            "---",
            truncated,
            "---",
        ]

    parts += ["", f"=== SPECIAL INSTRUCTIONS ({ctx.viewMode.value} mode) ===", _mode_instructions(ctx)]
    return "\n".join(parts)


def render_contextual_update(ctx: LearningContext) -> str:
    """Short briefing sent to a live conversation when learner state changes."""
    lines = [
        f'Learner progress on "{ctx.curriculumTitle}": {ctx.totalXp}/{ctx.maxTotalXp} XP.',
    ]
    if ctx.completedLevels:
        lines.append(f"Completed chapters: {', '.join(ctx.completedLevels)}.")
    if ctx.currentLesson is not None:
        lesson = ctx.currentLesson
        lines += [
            f"The learner is now reading chapter {lesson.id}: {lesson.name}.",
            f"Key concepts: {', '.join(lesson.concepts)}.",
            "Lesson content:",
            lesson.content,
        ]
    elif ctx.currentQuiz is not None:
        lines.append("The learner is taking the chapter quiz.")
        lines += _quiz_lines(ctx.currentQuiz)
    else:
        lines.append("The learner is choosing the next chapter.")
    lines += ["", _mode_instructions(ctx)]
    return "\n".join(lines)


def first_message(ctx: LearningContext | None) -> str:
    if ctx is not None and ctx.currentLesson is not None:
        return GREETING_LESSON.format(lesson=ctx.currentLesson.name)
    if ctx is not None and ctx.curriculumTitle:
        return GREETING_CURRICULUM.format(title=ctx.curriculumTitle)
    return GREETING_DEFAULT
