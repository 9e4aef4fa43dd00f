"""Controller for the Chat feature: sequences one conversational turn."""
import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import pydantic
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.chat.completion import CompletionInvoker
from api.features.chat.context import ContextLoader
from api.features.chat.dtos import MISSING_FIELDS_MESSAGE, ChatTurnRequest
from api.features.chat.locks import ConversationLockRegistry
from api.features.chat.persistence import TurnPersister
from api.features.chat.titles import TitleRefresher
from api.shared.auth import TokenVerifier
from api.shared.exceptions import EmptyCompletionError, FixieException, ValidationError

logger = structlog.get_logger("fixie.chat")


class TurnState(str, Enum):
    START = "start"
    VALIDATED = "validated"
    AUTHENTICATED = "authenticated"
    CONTEXT_LOADED = "context_loaded"
    COMPLETED = "completed"
    PERSISTED = "persisted"
    DONE = "done"
    FAILED = "failed"


@dataclass
class TurnResult:
    state: TurnState
    subject: str
    conversation_id: str
    message_id: str
    reply: str
    context_size: int
    title: Optional[str] = None


class ChatController:
    """Runs Start → Validated → Authenticated → ContextLoaded → Completed →
    Persisted → Done.

    The first failure ends the turn; nothing is retried here. Failures are
    logged once, tagged with the state the turn had reached, and re-raised for
    the HTTP layer to map.

    One deadline, ``turn_timeout_seconds`` from the start of the turn, bounds
    every provider call the turn makes. The title refresh only gets what is
    left of it and is skipped when less than ``title_min_seconds`` remain.
    """

    def __init__(
        self,
        token_verifier: TokenVerifier,
        context_loader: ContextLoader,
        completion_invoker: CompletionInvoker,
        turn_persister: TurnPersister,
        conversation_locks: ConversationLockRegistry,
        title_refresher: Optional[TitleRefresher] = None,
        turn_timeout_seconds: Optional[float] = None,
        title_min_seconds: float = 5.0,
    ):
        self.token_verifier = token_verifier
        self.context_loader = context_loader
        self.completion_invoker = completion_invoker
        self.turn_persister = turn_persister
        self.conversation_locks = conversation_locks
        self.title_refresher = title_refresher
        if turn_timeout_seconds is None:
            turn_timeout_seconds = completion_invoker.timeout_seconds
        self.turn_timeout_seconds = turn_timeout_seconds
        self.title_min_seconds = title_min_seconds

    @staticmethod
    def validate(payload: Any) -> ChatTurnRequest:
        if not isinstance(payload, dict):
            raise ValidationError(MISSING_FIELDS_MESSAGE)
        try:
            return ChatTurnRequest.model_validate(payload)
        except pydantic.ValidationError as e:
            raise ValidationError(
                MISSING_FIELDS_MESSAGE, {"errors": e.errors(include_url=False)}
            ) from e

    async def handle_turn(self, payload: Any, *, db_session: AsyncSession) -> TurnResult:
        state = TurnState.START
        deadline = time.monotonic() + self.turn_timeout_seconds
        subject: Optional[str] = None
        conversation_id: Optional[str] = None
        log = logger

        try:
            request = self.validate(payload)
            state = TurnState.VALIDATED
            conversation_id = request.conversationId
            log = log.bind(conversation_id=conversation_id)

            subject = await self.token_verifier.verify(request.idToken)
            state = TurnState.AUTHENTICATED
            log = log.bind(subject=subject)

            async with self.conversation_locks.hold(subject, conversation_id):
                history = await self.context_loader.load(db_session, subject, conversation_id)
                state = TurnState.CONTEXT_LOADED

                reply = await self._complete(history, deadline, log)
                state = TurnState.COMPLETED

                message = await self.turn_persister.persist(
                    db_session, subject, conversation_id, reply
                )
                state = TurnState.PERSISTED
        except FixieException as e:
            e.details.setdefault("failed_at", state.value)
            log_method = log.warning if e.status_code < 500 else log.error
            log_method(
                "chat.turn.failed",
                state=TurnState.FAILED.value,
                failed_at=state.value,
                kind=type(e).__name__,
                error_code=e.error_code,
                error=e.message,
            )
            raise
        except asyncio.CancelledError:
            log.info("chat.turn.cancelled", failed_at=state.value)
            raise
        except Exception:
            log.exception("chat.turn.failed", state=TurnState.FAILED.value, failed_at=state.value)
            raise

        state = TurnState.DONE
        log.info("chat.turn.completed", message_id=message.id, context_size=len(history))

        result = TurnResult(
            state=state,
            subject=subject,
            conversation_id=conversation_id,
            message_id=message.id,
            reply=reply,
            context_size=len(history),
        )
        if self.title_refresher is not None:
            transcript = history + [{"role": "assistant", "content": reply}]
            result.title = await self._refresh_title(
                db_session, result, transcript, deadline, log
            )
        return result

    async def _complete(
        self, history: List[Dict[str, str]], deadline: float, log
    ) -> str:
        try:
            return await self.completion_invoker.complete(
                history, timeout_seconds=deadline - time.monotonic()
            )
        except EmptyCompletionError as e:
            # The turn is still recorded, with an empty reply
            log.warning("chat.turn.empty_completion", error=e.message)
            return ""

    async def _refresh_title(
        self,
        db_session: AsyncSession,
        result: TurnResult,
        transcript: List[Dict[str, str]],
        deadline: float,
        log,
    ) -> Optional[str]:
        remaining = deadline - time.monotonic()
        if remaining < self.title_min_seconds:
            log.info("chat.title.skipped", remaining_seconds=round(max(remaining, 0.0), 3))
            return None
        try:
            return await self.title_refresher.refresh(
                db_session,
                result.subject,
                result.conversation_id,
                transcript,
                deadline=deadline,
            )
        except FixieException as e:
            log.warning("chat.title.failed", kind=type(e).__name__, error=e.message)
            return None
