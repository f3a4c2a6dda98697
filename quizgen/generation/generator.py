"""Question generation orchestration.

This module implements the single entry point other layers call to obtain
a quiz question. It composes the rate limiter, prompt builder, provider,
response parser and distractor synthesizer, and owns the session's
duplicate-avoidance history.
"""

import asyncio
import contextlib
import logging
import random
from typing import AsyncIterator, Callable, List, Optional, Union

from pydantic import BaseModel

from ..config import settings
from ..infrastructure.rate_limiter import (
    RateLimitConfig,
    RateLimiter,
    Sleep,
    countdown,
)
from ..logging_config import generation_id_context
from ..models import (
    GeneratedQuestion,
    GenerationParameters,
    QuotaStatus,
    SessionQuestion,
    StatusUpdate,
    generate_question_id,
)
from ..providers.base import BaseTextProvider
from ..providers.gemini_provider import GeminiProvider
from .distractors import DistractorSynthesizer, assemble_multiple_choice
from .fallback_pool import FallbackPool
from .parser import ResponseParser
from .prompts import build_prompt

logger = logging.getLogger(__name__)

DEFAULT_OPTIONS_COUNT = 4
MIN_OPTIONS_COUNT = 2
MAX_OPTIONS_COUNT = 20

StatusUpdateCallback = Callable[[StatusUpdate], None]


class GenerationComplete(BaseModel):
    """Final event of a generation stream."""

    question: GeneratedQuestion


GenerationEvent = Union[StatusUpdate, GenerationComplete]


def _seconds_label(seconds: int) -> str:
    return "second" if seconds == 1 else "seconds"


def default_rate_limiter() -> RateLimiter:
    """Build a limiter from the configured quota figures."""
    return RateLimiter(
        RateLimitConfig(
            max_requests=settings.max_requests_per_window,
            window_seconds=settings.rate_limit_window_seconds,
            min_interval_seconds=settings.min_request_interval_seconds,
        )
    )


def default_parser() -> ResponseParser:
    """Build a parser, extending the fallback pool from file if configured."""
    if settings.fallback_questions_path:
        return ResponseParser(FallbackPool.from_file(settings.fallback_questions_path))
    return ResponseParser()


class QuestionGenerator:
    """Generates quiz questions for one session.

    The rate limiter is injected so callers decide whether quota is shared:
    pass the same limiter to several generators to share it, or let each
    generator build its own.

    Rate-limit admission (wait, precondition check, request recording) is
    serialized per generator with an ``asyncio.Lock``. The provider call
    itself runs outside the lock.
    """

    def __init__(
        self,
        provider: Optional[BaseTextProvider] = None,
        rate_limiter: Optional[RateLimiter] = None,
        parser: Optional[ResponseParser] = None,
        distractor_synthesizer: Optional[DistractorSynthesizer] = None,
        recent_window: Optional[int] = None,
        sleep: Sleep = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        """Initialize the generator.

        Args:
            provider: Text provider (Gemini configured from settings if None)
            rate_limiter: Quota tracker (a fresh one from settings if None)
            parser: Response parser
            distractor_synthesizer: Wrong-answer generator (uses ``provider``)
            recent_window: Previous questions forwarded into prompts
            sleep: Awaitable sleep used for rate-limit waits
            rng: Random source for option shuffling
        """
        self.provider = provider or GeminiProvider()
        self.rate_limiter = rate_limiter or default_rate_limiter()
        self.parser = parser or default_parser()
        self.distractor_synthesizer = distractor_synthesizer or DistractorSynthesizer(
            self.provider
        )
        self.recent_window = (
            recent_window if recent_window is not None else settings.recent_question_window
        )
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._session: List[SessionQuestion] = []
        self._admission_lock = asyncio.Lock()

    @property
    def session_questions(self) -> List[SessionQuestion]:
        """Questions generated so far in this session, oldest first."""
        return list(self._session)

    def reset_session(self) -> None:
        """Forget the session's duplicate-avoidance history."""
        self._session.clear()

    def is_available(self) -> bool:
        """Whether a credential is present and the network is up."""
        return self.provider.is_available()

    def get_quota_status(self) -> QuotaStatus:
        """Current quota summary for display."""
        return self.rate_limiter.get_status()

    async def generate_question(
        self,
        params: Optional[GenerationParameters] = None,
        on_status_update: Optional[StatusUpdateCallback] = None,
        multiple_choice: bool = False,
        options_count: int = DEFAULT_OPTIONS_COUNT,
    ) -> GeneratedQuestion:
        """Generate one question.

        Args:
            params: Generation parameters (defaults when None)
            on_status_update: Optional callback for human-readable progress
            multiple_choice: Also synthesize distractors and shuffle options
            options_count: Total options, including the correct one (2-20)

        Returns:
            A validated question (possibly a fallback record)

        Raises:
            GenerationError: On network, credential or HTTP failures
            ValueError: If options_count is out of range
        """
        if multiple_choice and not MIN_OPTIONS_COUNT <= options_count <= MAX_OPTIONS_COUNT:
            raise ValueError(
                f"options_count must be between {MIN_OPTIONS_COUNT} and "
                f"{MAX_OPTIONS_COUNT}, got {options_count}"
            )

        params = params or GenerationParameters()
        notify = on_status_update or (lambda update: None)
        token = generation_id_context.set(generate_question_id())

        try:
            await self._admit(notify)

            prompt = build_prompt(self._with_session_history(params), self.recent_window)
            raw_text = await self.provider.generate(
                prompt, on_status=notify, check_ready=False
            )
            question = self.parser.parse(raw_text)

            if multiple_choice:
                distractors = await self.distractor_synthesizer.synthesize_distractors(
                    question.question_text,
                    question.answer_text,
                    options_count - 1,
                    question.difficulty,
                )
                question = assemble_multiple_choice(question, distractors, self._rng)

            self._session.append(question.to_session_question())
            logger.info(
                f"Generated question {question.id} "
                f"(category={question.category}, fallback={question.is_fallback})"
            )
            return question
        finally:
            generation_id_context.reset(token)

    async def stream_generation(
        self,
        params: Optional[GenerationParameters] = None,
        multiple_choice: bool = False,
        options_count: int = DEFAULT_OPTIONS_COUNT,
    ) -> AsyncIterator[GenerationEvent]:
        """Generate one question, yielding progress as it happens.

        Yields ``StatusUpdate`` events followed by exactly one
        ``GenerationComplete``. Closing the iterator early (for example by
        breaking out of ``async for``) cancels the generation, including any
        rate-limit or throttle wait in progress.

        Raises:
            GenerationError: On network, credential or HTTP failures
        """
        queue: "asyncio.Queue[StatusUpdate]" = asyncio.Queue()
        task = asyncio.create_task(
            self.generate_question(
                params,
                on_status_update=queue.put_nowait,
                multiple_choice=multiple_choice,
                options_count=options_count,
            )
        )
        getter: Optional[asyncio.Task] = None

        try:
            while True:
                getter = asyncio.create_task(queue.get())
                done, _ = await asyncio.wait(
                    {getter, task}, return_when=asyncio.FIRST_COMPLETED
                )
                if getter in done:
                    yield getter.result()
                    continue

                getter.cancel()
                while not queue.empty():
                    yield queue.get_nowait()
                yield GenerationComplete(question=task.result())
                return
        finally:
            if getter is not None and not getter.done():
                getter.cancel()
            if not task.done():
                logger.info("Generation stream closed early, cancelling generation")
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    async def _admit(self, notify: StatusUpdateCallback) -> None:
        """Wait for quota, check preconditions and record the request.

        The request is recorded before the call is issued, so a failed call
        still consumes a slot. Preconditions are checked once here, and the
        provider call skips its own connectivity probe.
        """
        async with self._admission_lock:
            status = self.rate_limiter.check_limit()
            if status.limited and status.wait_seconds:
                logger.info(
                    f"Rate limited locally, waiting {status.wait_seconds}s",
                    extra={"wait_seconds": status.wait_seconds},
                )
                async for remaining in countdown(status.wait_seconds, sleep=self._sleep):
                    notify(
                        StatusUpdate(
                            message=(
                                f"Please wait {remaining} {_seconds_label(remaining)} "
                                "before generating another question..."
                            ),
                            is_waiting=True,
                            seconds_remaining=remaining,
                        )
                    )
                notify(StatusUpdate(message="Generating your question..."))

            await self.provider.ensure_ready_async()
            self.rate_limiter.record_request()

    def _with_session_history(
        self, params: GenerationParameters
    ) -> GenerationParameters:
        """Merge caller-supplied history with this session's questions."""
        merged: List[SessionQuestion] = []
        seen = set()
        for entry in [*params.previous_questions, *self._session]:
            key = entry.question_text.strip().lower()
            if key in seen:
                continue
            seen.add(key)
            merged.append(entry)
        return params.model_copy(update={"previous_questions": merged})
