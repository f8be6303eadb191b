from __future__ import annotations

import logging

from tutor.schemas import XP_PER_LEVEL, Curriculum, GeneratedCurriculum, Level, LevelStatus

logger = logging.getLogger(__name__)


class CurriculumStore:
    """
    Owns the generated curriculum and the per-level progress.

    Levels always keep the shape: completed prefix, a single active level,
    locked suffix. `currentLevelId` and `totalXp` are derived on the
    Curriculum model from the level list.
    """

    def __init__(self) -> None:
        self.curriculum: Curriculum | None = None
        self.is_generating: bool = False

    @property
    def total_xp(self) -> int:
        return self.curriculum.totalXp if self.curriculum else 0

    @property
    def current_level_id(self) -> int | None:
        return self.curriculum.currentLevelId if self.curriculum else None

    def set_curriculum(self, new: Curriculum | GeneratedCurriculum) -> Curriculum:
        # Progress never comes from the generator: statuses and counters are forced.
        levels = sorted(new.levels, key=lambda lvl: lvl.id)
        initialized = [
            Level(
                id=lvl.id,
                name=lvl.name,
                description=lvl.description,
                content=lvl.content,
                concepts=list(lvl.concepts),
                quiz=lvl.quiz,
                status=LevelStatus.active if idx == 0 else LevelStatus.locked,
                progress=0,
                xp=0,
                maxXp=XP_PER_LEVEL,
                quizAttempts=0,
            )
            for idx, lvl in enumerate(levels)
        ]
        self.curriculum = Curriculum(
            documentId=new.documentId,
            documentName=new.documentName,
            title=new.title,
            levels=initialized,
            pdfContent=new.pdfContent,
        )
        logger.info("Curriculum %r set with %d levels", new.title, len(initialized))
        return self.curriculum

    def complete_level(self, level_id: int) -> bool:
        if self.curriculum is None:
            return False
        levels = self.curriculum.levels
        idx = next((i for i, lvl in enumerate(levels) if lvl.id == level_id), None)
        if idx is None or levels[idx].status != LevelStatus.active:
            return False

        level = levels[idx]
        level.status = LevelStatus.completed
        level.progress = 100
        level.xp = level.maxXp
        if idx + 1 < len(levels) and levels[idx + 1].status == LevelStatus.locked:
            levels[idx + 1].status = LevelStatus.active
        logger.info("Level %s completed (total xp %s)", level_id, self.curriculum.totalXp)
        return True

    def reset_curriculum(self) -> None:
        self.curriculum = None
        self.is_generating = False

    def get_current_level(self) -> Level | None:
        if self.curriculum is None:
            return None
        return self.curriculum.get_level(self.curriculum.currentLevelId)

    def get_level(self, level_id: int) -> Level | None:
        if self.curriculum is None:
            return None
        return self.curriculum.get_level(level_id)

    def increment_quiz_attempts(self, level_id: int) -> None:
        level = self.get_level(level_id)
        if level is not None:
            level.quizAttempts += 1
