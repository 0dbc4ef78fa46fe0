import asyncio
import json
import logging
import re
from datetime import datetime, tzinfo
from typing import Any, Optional
from zoneinfo import ZoneInfo

import anthropic
from pydantic import ValidationError

import config
from heuristics import heuristic_command
from models import CommandFragment, VoiceCommand
from prompts import BATCH_SYSTEM_PROMPT, STRICT_JSON_INSTRUCTION, SYSTEM_PROMPT
from reminders import extract_reminder_offsets, refers_to_last_scheduled
from splitter import split_into_fragments
from temporal import (
    TemporalKind,
    compose_due_date,
    extract_timezone_hint,
    local_now,
    resolve_temporal,
    split_due_date,
)

logger = logging.getLogger(__name__)

TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
MALFORMED_NOTE = "LLM response was not valid JSON, used fallback parser"


def strip_code_fence(text: str) -> str:
    """Strip a markdown code block (```json ... ```) if present."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = lines[1:]  # Remove first line (```json)
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]  # Remove last line (```)
        text = "\n".join(lines)
    return text.strip()


def extract_json(text: Optional[str]) -> Optional[Any]:
    """
    Parse JSON from an LLM reply.
    Tries a strict parse first, then the outermost {...} (or [...]) substring,
    with and without trailing commas. Returns None when nothing parses.
    """
    if not text:
        return None
    cleaned = strip_code_fence(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    for opener, closer in (("{", "}"), ("[", "]")):
        left, right = cleaned.find(opener), cleaned.rfind(closer)
        if left == -1 or right <= left:
            continue
        candidate = cleaned[left:right + 1]
        for attempt in (candidate, TRAILING_COMMA_RE.sub(r"\1", candidate)):
            try:
                return json.loads(attempt)
            except json.JSONDecodeError:
                continue
    return None


def describe_timezone(tz: Optional[tzinfo], now: datetime) -> str:
    if isinstance(tz, ZoneInfo):
        return tz.key
    if now.tzinfo is not None:
        return now.strftime("UTC%z")
    return "server local time"


class CommandResolver:
    """
    Resolves command text into VoiceCommands with the LLM, falling back to
    heuristic_command() whenever the LLM is disabled, fails, or times out.
    """

    def __init__(self, client=None, model: str = config.LLM_MODEL,
                 timeout: float = config.LLM_TIMEOUT_SECONDS,
                 max_tokens: int = config.LLM_MAX_TOKENS,
                 use_llm: bool = config.USE_LLM,
                 hour_policy: str = config.AMBIGUOUS_HOUR_POLICY):
        if client is None and use_llm and config.llm_configured():
            client = anthropic.AsyncAnthropic(api_key=config.ANTHROPIC_API_KEY, max_retries=0)
        self.client = client
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.use_llm = use_llm
        self.hour_policy = hour_policy

    @property
    def llm_enabled(self) -> bool:
        return self.use_llm and self.client is not None

    def _system_prompt(self, template: str, now: datetime, tz: Optional[tzinfo]) -> str:
        return template.format(
            now=now.isoformat(timespec="seconds"),
            weekday=now.strftime("%A"),
            timezone=describe_timezone(tz, now),
        )

    async def _complete(self, system_prompt: str, text: str) -> str:
        response = await asyncio.wait_for(
            self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=0.2,
                system=system_prompt,
                messages=[{"role": "user", "content": text}],
            ),
            timeout=self.timeout,
        )
        # Non-text blocks (tool_use, thinking) carry no text
        ai_text = "".join(getattr(block, "text", None) or "" for block in response.content or [])
        logger.debug("LLM response: %s", ai_text)
        return ai_text

    async def _complete_json(self, system_prompt: str, text: str) -> Optional[Any]:
        """One request, plus a single stricter retry when the reply is not JSON.
        Network and API errors are not retried."""
        parsed = extract_json(await self._complete(system_prompt, text))
        if parsed is None:
            logger.warning("Unparseable LLM response, retrying with strict JSON instruction")
            parsed = extract_json(await self._complete(system_prompt + STRICT_JSON_INSTRUCTION, text))
        return parsed

    def _heuristic(self, text: str, now: datetime, tz: Optional[tzinfo],
                   error: Optional[str] = None) -> VoiceCommand:
        """heuristic_command(), degraded to a bare "unknown" if it fails."""
        try:
            return heuristic_command(text, now, tz, self.hour_policy, error=error)
        except Exception:
            logger.exception("Heuristic resolution failed for %r", text)
            return VoiceCommand(text=text, intent="unknown", confidence=0.3,
                                error=error or "Could not parse command")

    def _fallback(self, text: str, now: datetime, tz: Optional[tzinfo], error: str) -> VoiceCommand:
        command = self._heuristic(text, now, tz, error)
        command.confidence = min(command.confidence, 0.5)
        return command

    async def resolve(self, text: str, now: Optional[datetime] = None,
                      tz: Optional[tzinfo] = None) -> VoiceCommand:
        """Resolve one (normalized) command; LLM and payload failures fall back to heuristics."""
        cleaned, hinted_tz = extract_timezone_hint(text)
        tz = tz or hinted_tz
        now = now or local_now(tz)

        if not self.llm_enabled:
            return self._heuristic(cleaned, now, tz)

        try:
            payload = await self._complete_json(self._system_prompt(SYSTEM_PROMPT, now, tz), cleaned)
        except (anthropic.APIError, asyncio.TimeoutError) as e:
            logger.warning("LLM request failed for %r, using fallback: %s", cleaned, e)
            return self._fallback(cleaned, now, tz, f"LLM unavailable ({e.__class__.__name__}), used fallback parser")

        if isinstance(payload, list) and payload and isinstance(payload[0], dict):
            payload = payload[0]
        command = self.to_command(payload, cleaned, now, tz)
        if command is None:
            return self._fallback(cleaned, now, tz, MALFORMED_NOTE)
        return command

    async def resolve_fragments(self, fragments: list[CommandFragment], now: Optional[datetime] = None,
                                tz: Optional[tzinfo] = None) -> list[VoiceCommand]:
        """Resolve fragments concurrently; results keep the fragments' order."""
        now = now or local_now(tz)
        ordered = sorted(fragments, key=lambda f: f.source_index)
        results = await asyncio.gather(
            *(self.resolve(fragment.text, now, tz) for fragment in ordered),
            return_exceptions=True,
        )
        commands = []
        for fragment, result in zip(ordered, results):
            if isinstance(result, Exception):
                logger.error("Fragment resolution failed for %r", fragment.text, exc_info=result)
                result = self._fallback(fragment.text, now, tz, f"Resolution failed ({result.__class__.__name__})")
            commands.append(result)
        return commands

    async def resolve_batch(self, transcript: str, now: Optional[datetime] = None,
                            tz: Optional[tzinfo] = None) -> list[VoiceCommand]:
        """
        Single-call mode: ask the LLM to split and parse the whole transcript.
        Falls back to deterministic splitting plus per-fragment resolution.
        """
        cleaned, hinted_tz = extract_timezone_hint(transcript)
        tz = tz or hinted_tz
        now = now or local_now(tz)

        if self.llm_enabled:
            try:
                commands = await self._batch_commands(cleaned, now, tz)
            except (anthropic.APIError, asyncio.TimeoutError) as e:
                logger.warning("Batch LLM request failed, splitting locally: %s", e)
                commands = None
            except Exception:
                logger.exception("Batch resolution failed, splitting locally")
                commands = None
            if commands:
                return commands

        return await self.resolve_fragments(split_into_fragments(cleaned), now, tz)

    async def _batch_commands(self, transcript: str, now: datetime,
                              tz: Optional[tzinfo]) -> Optional[list[VoiceCommand]]:
        """Commands from one batch LLM call, or None if any item is unusable."""
        payload = await self._complete_json(self._system_prompt(BATCH_SYSTEM_PROMPT, now, tz), transcript)
        items = payload.get("commands") if isinstance(payload, dict) else payload
        if not isinstance(items, list) or not items:
            return None

        commands = []
        for item in items:
            text = item.get("text") if isinstance(item, dict) else None
            if not isinstance(text, str) or not text.strip():
                text = transcript if len(items) == 1 else None
            command = self.to_command(item, text or transcript, now, tz, ground=text is not None)
            if command is None:
                logger.warning("Batch LLM response had an invalid command, splitting locally")
                return None
            commands.append(command)
        return commands

    def to_command(self, payload: Any, text: str, now: datetime, tz: Optional[tzinfo],
                   ground: bool = True) -> Optional[VoiceCommand]:
        """Validate an LLM payload into a VoiceCommand, or None if unusable."""
        if not isinstance(payload, dict) or "intent" not in payload:
            return None
        data = payload.get("extractedData")
        try:
            command = VoiceCommand.model_validate({
                "text": text,
                "intent": payload.get("intent"),
                "confidence": payload.get("confidence", 0.8),
                "extractedData": data if isinstance(data, dict) else {},
            })
        except ValidationError as e:
            logger.warning("LLM payload failed validation: %s", e)
            return None
        self._ground(command, text, now, tz, ground)
        return command

    def _ground(self, command: VoiceCommand, text: str, now: datetime,
                tz: Optional[tzinfo], check_text: bool) -> None:
        """Check LLM date/time/reminder fields against the deterministic resolvers."""
        data = command.data

        if data.due_date and not (data.date and data.time):
            due_day, due_time = split_due_date(data.due_date, tz)
            data.date = data.date or due_day
            data.time = data.time or due_time

        if check_text:
            temporal = resolve_temporal(text, now, self.hour_policy)
            if not data.date and temporal.date:
                data.date = temporal.date_str
                if not data.time and temporal.time:
                    data.time = temporal.time_str
            elif (data.date and temporal.date_source in (TemporalKind.CALENDAR_DATE, TemporalKind.WEEKDAY)
                  and data.date != temporal.date_str):
                logger.info("Overriding LLM date %s with resolved %s for %r", data.date, temporal.date_str, text)
                data.date = temporal.date_str

            if not data.reminders:
                data.reminders = extract_reminder_offsets(text)
            if data.reminders and not data.apply_to_last_scheduled and refers_to_last_scheduled(text):
                data.apply_to_last_scheduled = True

        if data.date and data.time:
            data.due_date = compose_due_date(data.date, data.time, tz)
