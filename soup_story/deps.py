"""
Shared application state and dependency functions for routers.

All mutable globals are stored here so that routers can import them
without circular imports with main.py.
"""

import logging
from typing import Optional

from soup_story.config import get_settings
from soup_story.errors import ConfigurationError
from soup_story.services.evaluation_gateway import EvaluationGateway
from soup_story.services.gemini_service import get_gemini_service
from soup_story.services.identity_verifier import IdentityVerifier
from soup_story.services.orchestrator import SessionOrchestrator
from soup_story.services.puzzles.puzzle_repository_factory import get_puzzle_repository
from soup_story.services.session.session_store_factory import get_session_store
from soup_story.services.story_accumulator import StoryAccumulator

logger = logging.getLogger(__name__)

# --- Mutable application state (set during startup) ---
identity_verifier: Optional[IdentityVerifier] = None
orchestrator: Optional[SessionOrchestrator] = None


def init_services():
    """Called from app startup event to wire the services together."""
    global identity_verifier, orchestrator
    settings = get_settings()

    identity_verifier = IdentityVerifier(
        settings.supabase_url,
        settings.supabase_anon_key,
        timeout=settings.identity_timeout_seconds,
    )
    if not settings.supabase_url or not settings.supabase_anon_key:
        logger.warning("[Startup] SUPABASE_URL / SUPABASE_ANON_KEY 未設定，所有需要登入的請求都會失敗")

    gemini = get_gemini_service()
    store = get_session_store()
    orchestrator = SessionOrchestrator(
        puzzle_repository=get_puzzle_repository(),
        session_store=store,
        evaluation_gateway=EvaluationGateway(gemini, settings),
        story_accumulator=StoryAccumulator(gemini, store, settings),
        settings=settings,
    )
    logger.info(f"[Startup] ✅ SessionOrchestrator ready (store={type(store).__name__})")


def get_identity_verifier() -> IdentityVerifier:
    if identity_verifier is None:
        raise ConfigurationError("Identity verifier not initialised")
    return identity_verifier


def get_orchestrator() -> SessionOrchestrator:
    if orchestrator is None:
        raise ConfigurationError("Orchestrator not initialised")
    return orchestrator
