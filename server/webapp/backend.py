"""Web application for EyeCare Insights.

This FastAPI app:
- serves the home page and the four content pages (Q&A, myths, research,
  age groups) as server-rendered HTML,
- stores or clears the user's Perplexity API key in the local config file,
- exposes the same four operations as a small JSON API under ``/v1``.

Each request builds its own :class:`~agent.core.EyeCareAgent` from the key
that is stored at that moment; nothing is shared between requests.

Optional client settings are read from a YAML file whose path is given by the
``EYECARE_WEB_CONFIG`` environment variable, or default to
``webapp/config.yaml``::

    perplexity:
      api_url: https://api.perplexity.ai/chat/completions
      model: llama-3.1-sonar-small-128k-online
      timeout_s: 120
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
import yaml
from fastapi import Depends, FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import BaseModel

from agent.core import AGE_GROUPS, EyeCareAgent, find_age_group
from agent.errors import ConfigurationError, EyeCareError, InvalidAPIKeyError, RequestFailedError
from agent.model_client import (
    DEFAULT_MODEL,
    INVALID_KEY_FORMAT_MESSAGE,
    PERPLEXITY_API_URL,
    validate_api_key,
)
from cli.config import apply_api_key_input, clear_api_key, load_api_key, resolve_api_key
from webapp import pages

logger = logging.getLogger(__name__)

app = FastAPI(title="EyeCare Insights")

_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"
_CONFIG_ENV_VAR = "EYECARE_WEB_CONFIG"

MISSING_KEY_MESSAGE = "Please configure your Perplexity API key first."


@lru_cache()
def load_config() -> Dict[str, Any]:
    """Load the YAML configuration; an absent file means defaults."""
    path = Path(os.environ.get(_CONFIG_ENV_VAR, str(_DEFAULT_CONFIG_PATH)))
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise RuntimeError(f"Failed to read web config at {path}.") from exc
    if not isinstance(data, dict):
        raise RuntimeError(f"Web config at {path} must be a mapping.")
    return data


def client_settings() -> Dict[str, Any]:
    section = load_config().get("perplexity") or {}
    timeout = section.get("timeout_s")
    return {
        "base_url": str(section.get("api_url") or PERPLEXITY_API_URL),
        "model": str(section.get("model") or DEFAULT_MODEL),
        "timeout": float(timeout) if timeout is not None else None,
    }


def get_stored_api_key() -> Optional[str]:
    return load_api_key()


def get_agent(api_key: Optional[str] = Depends(get_stored_api_key)) -> Optional[EyeCareAgent]:
    """Agent for the page handlers, or None while no valid key is stored."""
    if not api_key or not validate_api_key(api_key):
        return None
    return EyeCareAgent.from_api_key(api_key, **client_settings())


def _error_message(exc: Exception, fallback: str) -> str:
    return str(exc).strip() or fallback


def _safe_next(path: str) -> str:
    if not path.startswith("/") or path.startswith("//"):
        return "/"
    return path


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


@app.get("/", response_class=HTMLResponse)
def home(api_key: Optional[str] = Depends(get_stored_api_key)) -> HTMLResponse:
    return HTMLResponse(pages.render_home(api_key))


@app.get("/qa", response_class=HTMLResponse)
def qa_page(question: str = "", api_key: Optional[str] = Depends(get_stored_api_key)) -> HTMLResponse:
    return HTMLResponse(pages.render_qa(pages.PageState(api_key=api_key, question=question)))


@app.post("/qa", response_class=HTMLResponse)
def qa_submit(
    question: str = Form(""),
    api_key: Optional[str] = Depends(get_stored_api_key),
    agent: Optional[EyeCareAgent] = Depends(get_agent),
) -> HTMLResponse:
    state = pages.PageState(api_key=api_key if agent else None, question=question)
    if not question.strip():
        return HTMLResponse(pages.render_qa(state))
    if agent is None:
        state.error = MISSING_KEY_MESSAGE
        return HTMLResponse(pages.render_qa(state))

    try:
        state.answer = agent.ask_question(question)
    except (EyeCareError, requests.RequestException) as exc:
        state.error = _error_message(exc, "Failed to get an answer. Please try again.")
    return HTMLResponse(pages.render_qa(state))


def _fill_myths(state: pages.PageState, agent: EyeCareAgent) -> None:
    try:
        state.myths = agent.get_myths()
        state.last_updated = datetime.now()
    except (EyeCareError, requests.RequestException) as exc:
        state.error = _error_message(exc, "Failed to load myths and facts. Please try again.")


def _fill_research(state: pages.PageState, agent: EyeCareAgent) -> None:
    try:
        state.research = agent.get_research()
        state.last_updated = datetime.now()
    except (EyeCareError, requests.RequestException) as exc:
        state.error = _error_message(exc, "Failed to load research. Please try again.")


# Opening the myths or research page with a usable key loads it straight away;
# POST is the explicit refresh.


@app.get("/myths", response_class=HTMLResponse)
def myths_page(
    api_key: Optional[str] = Depends(get_stored_api_key),
    agent: Optional[EyeCareAgent] = Depends(get_agent),
) -> HTMLResponse:
    state = pages.PageState(api_key=api_key)
    if agent is not None:
        _fill_myths(state, agent)
    return HTMLResponse(pages.render_myths(state))


@app.post("/myths", response_class=HTMLResponse)
def myths_load(
    api_key: Optional[str] = Depends(get_stored_api_key),
    agent: Optional[EyeCareAgent] = Depends(get_agent),
) -> HTMLResponse:
    state = pages.PageState(api_key=api_key if agent else None)
    if agent is None:
        state.error = MISSING_KEY_MESSAGE
    else:
        _fill_myths(state, agent)
    return HTMLResponse(pages.render_myths(state))


@app.get("/research", response_class=HTMLResponse)
def research_page(
    api_key: Optional[str] = Depends(get_stored_api_key),
    agent: Optional[EyeCareAgent] = Depends(get_agent),
) -> HTMLResponse:
    state = pages.PageState(api_key=api_key)
    if agent is not None:
        _fill_research(state, agent)
    return HTMLResponse(pages.render_research(state))


@app.post("/research", response_class=HTMLResponse)
def research_load(
    api_key: Optional[str] = Depends(get_stored_api_key),
    agent: Optional[EyeCareAgent] = Depends(get_agent),
) -> HTMLResponse:
    state = pages.PageState(api_key=api_key if agent else None)
    if agent is None:
        state.error = MISSING_KEY_MESSAGE
    else:
        _fill_research(state, agent)
    return HTMLResponse(pages.render_research(state))


@app.get("/age-groups", response_class=HTMLResponse)
def age_groups_page(api_key: Optional[str] = Depends(get_stored_api_key)) -> HTMLResponse:
    return HTMLResponse(pages.render_age_groups(pages.PageState(api_key=api_key)))


@app.post("/age-groups/{group_id}", response_class=HTMLResponse)
def age_group_advice(
    group_id: str,
    api_key: Optional[str] = Depends(get_stored_api_key),
    agent: Optional[EyeCareAgent] = Depends(get_agent),
) -> HTMLResponse:
    group = find_age_group(group_id)
    if group is None:
        raise HTTPException(status_code=404, detail=f"Unknown age group '{group_id}'.")

    state = pages.PageState(api_key=api_key if agent else None)
    if agent is None:
        state.error = MISSING_KEY_MESSAGE
        return HTMLResponse(pages.render_age_groups(state))

    state.selected_group = group.id
    try:
        state.advice = agent.get_age_specific_advice(group.name)
    except (EyeCareError, requests.RequestException) as exc:
        state.error = _error_message(exc, "Failed to load age-specific advice. Please try again.")
    return HTMLResponse(pages.render_age_groups(state))


@app.post("/settings/api-key")
def save_api_key(api_key: str = Form(""), next_path: str = Form("/", alias="next")) -> RedirectResponse:
    if apply_api_key_input(api_key):
        logger.info("Stored a new Perplexity API key")
    else:
        logger.info("Rejected malformed API key; stored key cleared")
    return RedirectResponse(url=_safe_next(next_path), status_code=303)


@app.post("/settings/api-key/clear")
def remove_api_key(next_path: str = Form("/", alias="next")) -> RedirectResponse:
    clear_api_key()
    return RedirectResponse(url=_safe_next(next_path), status_code=303)


# ---------------------------------------------------------------------------
# JSON API
# ---------------------------------------------------------------------------


class AskRequest(BaseModel):
    question: str
    context: str | None = None


class AskResponse(BaseModel):
    answer: str


class Myth(BaseModel):
    myth: str
    fact: str
    explanation: str


class MythsResponse(BaseModel):
    myths: List[Myth]


class ResearchItem(BaseModel):
    title: str
    summary: str
    date: str
    source: str
    url: str | None = None


class ResearchResponse(BaseModel):
    research: List[ResearchItem]


class AdviceRequest(BaseModel):
    """``age_group`` is a group id (``children``, ``teens``...) or free text."""

    age_group: str


class AdviceResponse(BaseModel):
    age_group: str
    advice: str


def _extract_api_key(request: Request) -> str | None:
    auth = (request.headers.get("authorization") or "").strip()
    if auth.lower().startswith("bearer "):
        token = auth[7:].strip()
        return token or None
    x_api_key = (request.headers.get("x-api-key") or "").strip()
    return x_api_key or None


def get_api_agent(request: Request) -> EyeCareAgent:
    api_key = resolve_api_key(_extract_api_key(request), load_api_key())
    if api_key is not None and not validate_api_key(api_key):
        raise HTTPException(status_code=400, detail=INVALID_KEY_FORMAT_MESSAGE)
    try:
        return EyeCareAgent.from_api_key(api_key, **client_settings())
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


def _upstream_error(exc: Exception) -> HTTPException:
    if isinstance(exc, InvalidAPIKeyError):
        return HTTPException(status_code=401, detail=str(exc))
    if isinstance(exc, RequestFailedError):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=502, detail=_error_message(exc, "Failed to get response from AI service"))


@app.post("/v1/ask", response_model=AskResponse)
def api_ask(req: AskRequest, agent: EyeCareAgent = Depends(get_api_agent)) -> AskResponse:
    if not req.question.strip():
        raise HTTPException(status_code=400, detail="`question` must not be empty.")
    try:
        answer = agent.ask_question(req.question, req.context)
    except (EyeCareError, requests.RequestException) as exc:
        raise _upstream_error(exc) from exc
    return AskResponse(answer=answer)


@app.get("/v1/myths", response_model=MythsResponse)
def api_myths(agent: EyeCareAgent = Depends(get_api_agent)) -> MythsResponse:
    try:
        records = agent.get_myths()
    except (EyeCareError, requests.RequestException) as exc:
        raise _upstream_error(exc) from exc
    return MythsResponse(myths=[Myth(**r.to_dict()) for r in records])


@app.get("/v1/research", response_model=ResearchResponse)
def api_research(agent: EyeCareAgent = Depends(get_api_agent)) -> ResearchResponse:
    try:
        records = agent.get_research()
    except (EyeCareError, requests.RequestException) as exc:
        raise _upstream_error(exc) from exc
    return ResearchResponse(research=[ResearchItem(**r.to_dict()) for r in records])


@app.post("/v1/advice", response_model=AdviceResponse)
def api_advice(req: AdviceRequest, agent: EyeCareAgent = Depends(get_api_agent)) -> AdviceResponse:
    group = find_age_group(req.age_group)
    name = group.name if group else req.age_group.strip()
    if not name:
        known = ", ".join(g.id for g in AGE_GROUPS)
        raise HTTPException(status_code=400, detail=f"`age_group` is required (one of: {known}).")
    try:
        advice = agent.get_age_specific_advice(name)
    except (EyeCareError, requests.RequestException) as exc:
        raise _upstream_error(exc) from exc
    return AdviceResponse(age_group=name, advice=advice)
