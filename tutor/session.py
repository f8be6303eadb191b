from __future__ import annotations

import logging

from tutor.context_builder import ContextTracker, build_learning_context
from tutor.curriculum_store import CurriculumStore
from tutor.documents import DocumentStore
from tutor.flow import LessonFlow
from tutor.schemas import Curriculum, GeneratedCurriculum, LearningContext, SessionStateResponse

logger = logging.getLogger(__name__)


class TutorSession:
    """
    Composition root for one learner: curriculum, lesson flow, documents and
    voice-agent briefing state. Handlers mutate it from the event loop only.
    """

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self.curriculum = CurriculumStore()
        self.flow = LessonFlow(self.curriculum)
        self.documents = DocumentStore()
        self.context_tracker = ContextTracker()
        self.voice_connected = False
        self._generation_token = 0

    # Curriculum

    def set_curriculum(self, new: Curriculum | GeneratedCurriculum) -> None:
        self.curriculum.set_curriculum(new)
        self.flow.clear()

    def complete_level(self, level_id: int) -> None:
        if self.curriculum.complete_level(level_id):
            self.flow.clear()

    def reset_curriculum(self) -> None:
        self._generation_token += 1
        self.curriculum.reset_curriculum()
        self.flow.clear()

    # Generation: results are committed only if no newer attempt or reset happened since.

    def begin_generation(self) -> int:
        self._generation_token += 1
        self.curriculum.is_generating = True
        return self._generation_token

    def is_current_generation(self, token: int) -> bool:
        return token == self._generation_token

    def commit_generation(self, token: int, new: GeneratedCurriculum) -> bool:
        if not self.is_current_generation(token):
            logger.info("Session %s: dropping stale curriculum (token %s)", self.session_id, token)
            return False
        self.set_curriculum(new)
        self.curriculum.is_generating = False
        return True

    def fail_generation(self, token: int) -> None:
        if self.is_current_generation(token):
            self.curriculum.is_generating = False

    # Voice agent briefing

    def learning_context(self) -> LearningContext | None:
        return build_learning_context(
            self.curriculum.curriculum,
            self.flow.view_mode,
            self.flow.get_active_lesson(),
            self.flow.active_quiz,
            self.curriculum.total_xp,
        )

    def connect_voice(self, briefed: LearningContext | None) -> None:
        # `briefed` is the context the agent actually received; later changes stay pending.
        self.voice_connected = True
        self.context_tracker.reset()
        self.context_tracker.should_send(briefed)

    def disconnect_voice(self) -> None:
        self.voice_connected = False
        self.context_tracker.reset()

    def pending_context_update(self) -> LearningContext | None:
        if not self.voice_connected:
            return None
        ctx = self.learning_context()
        if not self.context_tracker.should_send(ctx):
            return None
        return ctx

    def snapshot(self) -> SessionStateResponse:
        store = self.curriculum
        selected = self.documents.selected
        return SessionStateResponse(
            sessionId=self.session_id,
            curriculum=store.curriculum,
            isGenerating=store.is_generating,
            currentLevelId=store.current_level_id,
            totalXp=store.total_xp,
            viewMode=self.flow.view_mode,
            activeLessonId=self.flow.active_lesson_id,
            activeQuiz=self.flow.active_quiz,
            canRetry=self.flow.can_retry(),
            documents=[d.info() for d in self.documents.documents],
            selectedDocumentId=selected.id if selected else None,
            voiceConnected=self.voice_connected,
        )
