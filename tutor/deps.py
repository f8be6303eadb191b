from __future__ import annotations

from fastapi import Depends, Request

from tutor.config import Settings, get_settings
from tutor.curriculum_generator import CurriculumGenerator
from tutor.memory import SessionStore
from tutor.voice_agent import VoiceAgentService


def get_settings_dep() -> Settings:
    return get_settings()


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.sessions


def get_curriculum_generator(settings: Settings = Depends(get_settings_dep)) -> CurriculumGenerator:
    return CurriculumGenerator(settings)


def get_voice_agent(settings: Settings = Depends(get_settings_dep)) -> VoiceAgentService:
    return VoiceAgentService(settings)
