from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

XP_PER_LEVEL = 100
LEVEL_COUNT = 5
OPTION_COUNT = 4


class LevelStatus(str, Enum):
    completed = "completed"
    active = "active"
    locked = "locked"


class ViewMode(str, Enum):
    idle = "idle"
    lesson = "lesson"
    quiz = "quiz"


class Quiz(BaseModel):
    model_config = ConfigDict(frozen=True)

    question: str
    options: list[str] = Field(..., min_length=OPTION_COUNT, max_length=OPTION_COUNT)
    correctAnswer: int = Field(..., ge=0, lt=OPTION_COUNT, description="Index into options")
    explanation: str


class GeneratedLevel(BaseModel):
    id: int
    name: str
    description: str
    content: str
    concepts: list[str] = Field(default_factory=list)
    quiz: Quiz


class Level(GeneratedLevel):
    status: LevelStatus = LevelStatus.locked
    progress: int = Field(0, ge=0, le=100)
    xp: int = 0
    maxXp: int = XP_PER_LEVEL
    quizAttempts: int = 0


def _check_level_ids(levels: list[GeneratedLevel]) -> None:
    ids = [lvl.id for lvl in levels]
    if len(set(ids)) != len(ids):
        raise ValueError(f"Duplicate level ids: {ids}")


class GeneratedCurriculum(BaseModel):
    """Curriculum as returned by the generation endpoint (no progress state)."""

    title: str
    levels: list[GeneratedLevel] = Field(..., min_length=LEVEL_COUNT, max_length=LEVEL_COUNT)
    documentId: str = ""
    documentName: str = ""
    pdfContent: str | None = None

    @field_validator("levels")
    @classmethod
    def _ordered_levels(cls, levels: list[GeneratedLevel]) -> list[GeneratedLevel]:
        _check_level_ids(levels)
        return sorted(levels, key=lambda lvl: lvl.id)


class Curriculum(BaseModel):
    documentId: str = ""
    documentName: str = ""
    title: str
    levels: list[Level] = Field(..., min_length=1)
    pdfContent: str | None = None

    @model_validator(mode="after")
    def _ordered_levels(self) -> "Curriculum":
        _check_level_ids(self.levels)
        self.levels.sort(key=lambda lvl: lvl.id)
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def totalXp(self) -> int:
        return sum(lvl.xp for lvl in self.levels)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def currentLevelId(self) -> int:
        for lvl in self.levels:
            if lvl.status == LevelStatus.active:
                return lvl.id
        completed = [lvl.id for lvl in self.levels if lvl.status == LevelStatus.completed]
        if completed:
            return completed[-1]
        return self.levels[0].id

    def get_level(self, level_id: int) -> Level | None:
        for lvl in self.levels:
            if lvl.id == level_id:
                return lvl
        return None


class ActiveQuiz(BaseModel):
    levelId: int
    quiz: Quiz
    selectedAnswer: int | None = None
    isCorrect: bool | None = None
    attempts: int = 0
    showExplanation: bool = False


class DocumentInfo(BaseModel):
    id: str
    name: str
    size: int
    type: str


# Learning context sent to the voice agent


class LevelInfo(BaseModel):
    id: int
    name: str
    description: str
    content: str
    concepts: list[str] = Field(default_factory=list)
    status: LevelStatus
    xp: int
    maxXp: int
    quiz: Quiz | None = None


class LessonInfo(BaseModel):
    id: int
    name: str
    description: str
    content: str
    concepts: list[str] = Field(default_factory=list)


class QuizInfo(BaseModel):
    question: str
    options: list[str]
    selectedAnswer: int | None = None
    isCorrect: bool | None = None
    attempts: int = 0
    explanation: str = ""


class LearningContext(BaseModel):
    documentId: str = ""
    documentName: str = ""
    curriculumTitle: str = ""
    totalXp: int = 0
    maxTotalXp: int = 0
    viewMode: ViewMode = ViewMode.idle
    pdfContent: str | None = None
    allLevels: list[LevelInfo] = Field(default_factory=list)
    currentLesson: LessonInfo | None = None
    currentQuiz: QuizInfo | None = None
    completedLevels: list[str] = Field(default_factory=list)


# HTTP requests / responses


class CurriculumGenerationRequest(BaseModel):
    pdfText: str | None = None
    documentName: str = ""
    documentId: str = ""


class VoiceSessionRequest(BaseModel):
    learningContext: LearningContext | None = None


class VoiceSessionResponse(BaseModel):
    agentId: str
    conversationToken: str


class VoiceStatusResponse(BaseModel):
    configured: bool
    agentId: str | None = None
    hasAgent: bool


class MessageResponse(BaseModel):
    message: str


class SelectDocumentRequest(BaseModel):
    documentId: str | None = None


class AnswerQuizRequest(BaseModel):
    answerIndex: int = Field(..., ge=0)


class SessionStateResponse(BaseModel):
    sessionId: str
    curriculum: Curriculum | None = None
    isGenerating: bool = False
    currentLevelId: int | None = None
    totalXp: int = 0
    viewMode: ViewMode = ViewMode.idle
    activeLessonId: int | None = None
    activeQuiz: ActiveQuiz | None = None
    canRetry: bool = False
    documents: list[DocumentInfo] = Field(default_factory=list)
    selectedDocumentId: str | None = None
    voiceConnected: bool = False


class AnswerQuizResponse(BaseModel):
    isCorrect: bool
    state: SessionStateResponse


class ContextResponse(BaseModel):
    learningContext: LearningContext | None = None
    briefing: str | None = None


class ContextUpdateResponse(BaseModel):
    changed: bool
    learningContext: LearningContext | None = None
    contextualUpdate: str | None = None
