from __future__ import annotations

import json
import logging
import re
from asyncio import sleep
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from openai import APIConnectionError, APITimeoutError, AsyncOpenAI, RateLimitError
from pydantic import ValidationError

from reminder_parser.core.settings import get_settings
from reminder_parser.llm.prompts import PromptDialect, PromptTemplate, get_template
from reminder_parser.schemas.notifications import Notification, normalize_notification_payload, notification_adapter
from reminder_parser.services.cost_control import MonthlyCostGuard
from reminder_parser.services.guardrails import LLMCircuitBreaker
from reminder_parser.services.schedule import to_local


class NotificationValidationError(ValueError):
    pass


class NoCompletionError(ValueError):
    pass


class LLMBudgetExceededError(ValueError):
    pass


class LLMRateLimitError(ValueError):
    pass


class LLMCircuitOpenError(ValueError):
    pass


logger = logging.getLogger(__name__)


class NotificationParser:
    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        cost_guard: MonthlyCostGuard | None = None,
        circuit_breaker: LLMCircuitBreaker | None = None,
        dialect: PromptDialect | str | None = None,
        recovery_attempts: int | None = None,
    ) -> None:
        settings = get_settings()
        self._model = settings.openai_model
        self._tz = ZoneInfo(settings.app_timezone)
        self._template: PromptTemplate = get_template(dialect or settings.prompt_dialect)
        self._recovery_attempts = settings.llm_recovery_attempts if recovery_attempts is None else recovery_attempts
        self._client = client or AsyncOpenAI(api_key=settings.openai_api_key, max_retries=0)
        self._cost_guard = cost_guard or MonthlyCostGuard(
            monthly_usd_limit=settings.openai_monthly_budget_usd,
            estimated_input_cost_per_1k=settings.openai_estimated_input_cost_per_1k,
            estimated_output_cost_per_1k=settings.openai_estimated_output_cost_per_1k,
        )
        self._circuit_breaker = circuit_breaker or LLMCircuitBreaker(
            failure_threshold=settings.llm_circuit_failure_threshold,
            open_seconds=settings.llm_circuit_open_seconds,
        )

    @property
    def template(self) -> PromptTemplate:
        return self._template

    async def parse(self, query: str, now: datetime | None = None) -> Notification:
        now = to_local(now or datetime.now(self._tz), self._tz)
        if not query.strip():
            raise NotificationValidationError("Reminder query is empty")
        if self._circuit_breaker.is_open(now):
            raise LLMCircuitOpenError("LLM circuit breaker is open")
        if not self._cost_guard.can_spend(estimated_usd=0.001, now=now):
            raise LLMBudgetExceededError("Monthly LLM budget exceeded")

        raw_output = await self._complete(self._template.render_messages(query, now, self._tz), now=now)
        try:
            return parse_notification(raw_output, tz=self._tz)
        except NotificationValidationError:
            for attempt in range(self._recovery_attempts):
                logger.info("Retrying invalid notification output: attempt=%s", attempt + 1)
                recovered = await self._recover_notification(query=query, raw_output=raw_output, now=now)
                if isinstance(recovered, str):
                    raw_output = recovered
                    continue
                if recovered is not None:
                    return recovered
            raise

    async def _complete(self, messages: list[dict[str, str]], *, now: datetime) -> str:
        response = None
        for attempt in range(2):
            try:
                response = await self._client.responses.create(
                    model=self._model,
                    input=messages,
                    temperature=0,
                )
                break
            except RateLimitError as exc:
                self._circuit_breaker.register_failure(now)
                raise LLMRateLimitError("OpenAI rate limit or quota exceeded") from exc
            except (APIConnectionError, APITimeoutError):
                if attempt == 1:
                    self._circuit_breaker.register_failure(now)
                    raise
                await sleep(0.5 * (attempt + 1))

        assert response is not None
        self._circuit_breaker.register_success()
        self._track_usage(response, now)

        raw_output = (getattr(response, "output_text", None) or "").strip()
        logger.info("LLM raw output: %s", raw_output)
        if not raw_output:
            raise NoCompletionError("LLM returned no completion")
        return raw_output

    def _track_usage(self, response: Any, now: datetime) -> None:
        usage = getattr(response, "usage", None)
        input_tokens = int(getattr(usage, "input_tokens", 0) or 0)
        output_tokens = int(getattr(usage, "output_tokens", 0) or 0)
        snapshot = self._cost_guard.register_tokens(input_tokens, output_tokens, now=now)
        logger.info(
            "LLM usage tracked: month=%s total_tokens=%s total_usd=%.6f",
            snapshot.month_key,
            snapshot.total_tokens,
            snapshot.total_usd,
        )
        for threshold in self._cost_guard.get_new_alert_thresholds(now):
            logger.warning("LLM budget threshold reached: %s%%", threshold)

    async def _recover_notification(self, *, query: str, raw_output: str, now: datetime) -> Notification | str | None:
        """Ask the model to repair its answer.

        Returns the notification on success, the still-invalid text when the
        repair failed validation, or None when the call itself failed.
        """
        messages = self._template.recovery_messages(query, raw_output, now, self._tz)
        try:
            fixed_output = await self._complete(messages, now=now)
        except Exception:
            logger.exception("Failed to recover invalid notification JSON with LLM")
            return None

        logger.info("LLM recovered raw output: %s", fixed_output)
        try:
            return parse_notification(fixed_output, tz=self._tz)
        except NotificationValidationError:
            logger.warning("Recovered output is still invalid: %s", fixed_output)
            return fixed_output


def parse_notification(raw_output: str | dict[str, Any], tz: ZoneInfo | None = None) -> Notification:
    payload: Any
    if isinstance(raw_output, str):
        cleaned = _normalize_llm_json_text(raw_output)
        try:
            payload = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise NotificationValidationError("LLM output is not valid JSON") from exc
    else:
        payload = raw_output
    if not isinstance(payload, dict):
        raise NotificationValidationError("LLM output is not a JSON object")
    payload = normalize_notification_payload(payload)

    context = {"tz": tz} if tz is not None else None
    try:
        return notification_adapter.validate_python(payload, context=context)
    except ValidationError as exc:
        logger.warning("Notification schema validation failed. payload=%s errors=%s", payload, exc.errors())
        raise NotificationValidationError("LLM notification does not match schema") from exc


def _normalize_llm_json_text(text: str) -> str:
    value = text.strip()
    fenced = re.match(r"^```(?:json)?\s*(.*?)\s*```$", value, flags=re.DOTALL | re.IGNORECASE)
    if fenced:
        value = fenced.group(1).strip()
    # Some completions repeat the few-shot "Answer:" prefix.
    if value.lower().startswith("answer:"):
        value = value[len("answer:") :].strip()
    return value
