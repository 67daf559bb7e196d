"""Intent resolution and orchestration engine."""

from ff1agent.agent.direct import build_playlist_direct
from ff1agent.agent.intent import IntentResolver, IntentResult
from ff1agent.agent.orchestrator import Orchestrator, RunResult
from ff1agent.agent.registry import Registry
from ff1agent.agent.services import Services

__all__ = [
    "IntentResolver",
    "IntentResult",
    "Orchestrator",
    "Registry",
    "RunResult",
    "Services",
    "build_playlist_direct",
]
