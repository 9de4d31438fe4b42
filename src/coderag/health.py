"""Reachability checks for the services indexing and querying depend on.

Qdrant must answer ``/healthz``. Every Ollama endpoint used by the embedding
or generation backend must answer ``/api/tags`` and list the configured
models, with or without their ``:tag`` suffix.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Dict, List, Optional, Set

import requests

logger = logging.getLogger(__name__)

HEALTH_TIMEOUT = 5


@dataclasses.dataclass
class HealthCheck:
    name: str
    ok: bool
    detail: str = ""


@dataclasses.dataclass
class HealthReport:
    checks: List[HealthCheck] = dataclasses.field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(c.ok for c in self.checks)


def qdrant_base_url(qdrant_cfg: Dict) -> str:
    if qdrant_cfg.get("url"):
        return qdrant_cfg["url"].rstrip("/")
    return f"http://{qdrant_cfg.get('host', 'localhost')}:{qdrant_cfg.get('port', 6333)}"


def installed_models(payload) -> Set[str]:
    """Lower-cased model names from an ``/api/tags`` payload, also without the tag."""
    names: Set[str] = set()
    models = payload.get("models") if isinstance(payload, dict) else None
    for model in models or []:
        name = model.get("name") if isinstance(model, dict) else None
        if not name:
            continue
        names.add(name.lower())
        if ":" in name:
            names.add(name.split(":", 1)[0].lower())
    return names


def check_qdrant(qdrant_cfg: Dict, session: requests.Session, timeout: float = HEALTH_TIMEOUT) -> HealthCheck:
    base = qdrant_base_url(qdrant_cfg)
    try:
        response = session.get(f"{base}/healthz", timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.warning(f"Qdrant health check against {base} failed: {e}")
        return HealthCheck(name="qdrant", ok=False, detail=f"Qdrant is not reachable at {base}: {e}")
    return HealthCheck(name="qdrant", ok=True, detail=f"Qdrant is reachable at {base}")


def check_ollama(
    base_url: str,
    required_models: List[str],
    session: requests.Session,
    timeout: float = HEALTH_TIMEOUT,
) -> HealthCheck:
    base = base_url.rstrip("/")
    try:
        response = session.get(f"{base}/api/tags", timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning(f"Ollama health check against {base} failed: {e}")
        return HealthCheck(name="ollama", ok=False, detail=f"Ollama is not reachable at {base}: {e}")

    installed = installed_models(payload)
    missing = [m for m in required_models if m.lower() not in installed]
    if missing:
        pulls = "; ".join(f"ollama pull {m}" for m in missing)
        return HealthCheck(name="ollama", ok=False, detail=f"Missing Ollama models at {base}: {pulls}")
    return HealthCheck(name="ollama", ok=True, detail=f"Ollama at {base} has {', '.join(required_models)}")


def _required_ollama_models(cfg: Dict) -> Dict[str, List[str]]:
    """Map each Ollama base URL to the models the config expects there."""
    required: Dict[str, List[str]] = {}
    for section in ("embedding", "llm"):
        settings = cfg.get(section, {})
        if settings.get("backend") != "ollama":
            continue
        models = required.setdefault(settings["base_url"].rstrip("/"), [])
        if settings["model"] not in models:
            models.append(settings["model"])
    return required


def check_health(
    cfg: Dict,
    session: Optional[requests.Session] = None,
    timeout: float = HEALTH_TIMEOUT,
) -> HealthReport:
    """Check Qdrant and every Ollama endpoint named in ``cfg``."""
    own_session = session is None
    session = session or requests.Session()
    report = HealthReport()
    try:
        report.checks.append(check_qdrant(cfg["vector_store"]["qdrant"], session, timeout))
        for base_url, models in _required_ollama_models(cfg).items():
            report.checks.append(check_ollama(base_url, models, session, timeout))
    finally:
        if own_session:
            session.close()
    return report
