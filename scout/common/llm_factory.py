"""
LLM Factory Module.

All workers should use these factories instead of direct ChatOpenAI
instantiation so that every call shares the OpenAI rate limiter and is
tagged with the stage and run that issued it.

Usage:
    from scout.common.llm_factory import create_llm

    llm = create_llm(stage="signal_worker")

    llm = create_llm(
        model="gpt-4o-mini",
        temperature=0.3,
        stage="fit_analyzer",
        run_id="run_123",
    )
"""

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from langchain_core.callbacks import BaseCallbackHandler
from langchain_openai import ChatOpenAI

from scout.common.config import Config
from scout.common.rate_limiter import Provider, RateLimiter, get_rate_limiter

logger = logging.getLogger(__name__)


class RateLimitCallback(BaseCallbackHandler):
    """
    Blocks before each chat model call until the provider limiter allows it.

    Also counts calls so a run can report its LLM usage.
    """

    raise_error = True

    def __init__(self, limiter: RateLimiter, stage: Optional[str] = None, run_id: Optional[str] = None):
        self.limiter = limiter
        self.stage = stage
        self.run_id = run_id
        self.calls = 0

    def on_chat_model_start(
        self,
        serialized: Dict[str, Any],
        messages: List[List[Any]],
        *,
        run_id: UUID,
        **kwargs: Any,
    ) -> None:
        if not self.limiter.acquire():
            raise RuntimeError(f"LLM rate limit exhausted for {self.limiter.provider} (stage={self.stage})")
        self.calls += 1
        logger.debug(f"LLM call #{self.calls} stage={self.stage} run_id={self.run_id}")


def create_llm(
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    stage: Optional[str] = None,
    run_id: Optional[str] = None,
    additional_callbacks: Optional[List[BaseCallbackHandler]] = None,
    **kwargs: Any,
) -> ChatOpenAI:
    """
    Create a ChatOpenAI instance wired to the shared rate limiter.

    Args:
        model: Model name (defaults to Config.DEFAULT_MODEL)
        temperature: Temperature (defaults to Config.ANALYTICAL_TEMPERATURE)
        stage: Stage name for attribution in logs
        run_id: Optional run identifier
        additional_callbacks: Additional callbacks to add
        **kwargs: Additional ChatOpenAI parameters

    Example:
        llm = create_llm(stage="synthesizer")
        response = llm.invoke([SystemMessage(content="..."), HumanMessage(content="...")])
    """
    effective_model = model or Config.DEFAULT_MODEL
    effective_temperature = temperature if temperature is not None else Config.ANALYTICAL_TEMPERATURE

    callbacks: List[BaseCallbackHandler] = [
        RateLimitCallback(get_rate_limiter(Provider.OPENAI.value), stage=stage, run_id=run_id)
    ]
    if additional_callbacks:
        callbacks.extend(additional_callbacks)

    llm = ChatOpenAI(
        model=effective_model,
        temperature=effective_temperature,
        api_key=Config.get_llm_api_key(),
        base_url=Config.get_llm_base_url(),
        callbacks=callbacks,
        tags=[tag for tag in ("company-scout", stage) if tag],
        **kwargs,
    )

    logger.debug(f"Created OpenAI LLM: model={effective_model}, stage={stage}, run_id={run_id}")

    return llm
