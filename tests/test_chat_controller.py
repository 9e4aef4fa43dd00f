from __future__ import annotations

import asyncio

import pytest

from api.features.chat.completion import CompletionInvoker
from api.features.chat.context import ContextLoader
from api.features.chat.controller import ChatController, TurnState
from api.features.chat.dtos import MISSING_FIELDS_MESSAGE
from api.features.chat.locks import ConversationLockRegistry
from api.features.chat.persistence import TurnPersister
from api.features.chat.titles import TitleRefresher
from api.features.conversation import repository
from api.shared.auth import TokenVerifier
from api.shared.exceptions import AuthError, NotFoundError, ProviderError, ValidationError
from tests.conftest import TOKEN, USER_ID
from tests.fakes import FakeCompletions, FakeProvider, openai_status_error


def make_controller(identity, completions, *, with_titles=False, timeout_seconds=120.0, **kwargs):
    invoker = CompletionInvoker(FakeProvider(completions), timeout_seconds=timeout_seconds)
    return ChatController(
        token_verifier=TokenVerifier(identity),
        context_loader=ContextLoader(),
        completion_invoker=invoker,
        turn_persister=TurnPersister(),
        conversation_locks=ConversationLockRegistry(),
        title_refresher=TitleRefresher(invoker) if with_titles else None,
        **kwargs,
    )


async def _messages(session, conversation_id="c1"):
    async with session.begin():
        return await repository.fetch_recent_messages(
            session, user_id=USER_ID, conversation_id=conversation_id
        )


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"idToken": TOKEN},
        {"conversationId": "c1"},
        {"idToken": "", "conversationId": "c1"},
        {"idToken": TOKEN, "conversationId": "  "},
        {"idToken": 42, "conversationId": "c1"},
        ["not", "an", "object"],
        None,
    ],
)
async def test_missing_fields_rejected_before_auth(session, identity, payload):
    controller = make_controller(identity, FakeCompletions())

    with pytest.raises(ValidationError) as excinfo:
        await controller.handle_turn(payload, db_session=session)
    assert excinfo.value.public_message == MISSING_FIELDS_MESSAGE
    assert excinfo.value.details["failed_at"] == TurnState.START.value
    assert identity.lookups == []


async def test_successful_turn(session, seed, identity):
    await seed("c1", messages=[("user", "wifi drops"), ("assistant", "Which router?"), ("user", "TP-Link")])
    completions = FakeCompletions(["Try restarting your router."])
    controller = make_controller(identity, completions)

    result = await controller.handle_turn(
        {"idToken": TOKEN, "conversationId": "c1"}, db_session=session
    )

    assert result.state == TurnState.DONE
    assert result.subject == USER_ID
    assert result.context_size == 3
    rows = await _messages(session)
    assert len(rows) == 4
    assert (rows[-1].role.value, rows[-1].content) == ("assistant", "Try restarting your router.")
    assert rows[-1].id == result.message_id


async def test_invalid_token_fails_at_validated(session, seed, identity):
    await seed("c1")
    completions = FakeCompletions(["unused"])
    controller = make_controller(identity, completions)

    with pytest.raises(AuthError) as excinfo:
        await controller.handle_turn({"idToken": "bad", "conversationId": "c1"}, db_session=session)
    assert excinfo.value.details["failed_at"] == TurnState.VALIDATED.value
    assert completions.calls == []


async def test_provider_error_appends_nothing(session, seed, identity):
    await seed("c1", messages=[("user", "help")])
    controller = make_controller(identity, FakeCompletions([openai_status_error(400)]))

    with pytest.raises(ProviderError) as excinfo:
        await controller.handle_turn({"idToken": TOKEN, "conversationId": "c1"}, db_session=session)
    assert excinfo.value.details["failed_at"] == TurnState.CONTEXT_LOADED.value
    assert len(await _messages(session)) == 1


async def test_empty_completion_still_persists_empty_reply(session, seed, identity):
    await seed("c1", messages=[("user", "help")])
    controller = make_controller(identity, FakeCompletions([""]))

    result = await controller.handle_turn(
        {"idToken": TOKEN, "conversationId": "c1"}, db_session=session
    )

    assert result.reply == ""
    rows = await _messages(session)
    assert rows[-1].content == ""


async def test_missing_conversation_is_not_found(session, identity):
    controller = make_controller(identity, FakeCompletions(["orphan?"]))

    with pytest.raises(NotFoundError) as excinfo:
        await controller.handle_turn({"idToken": TOKEN, "conversationId": "ghost"}, db_session=session)
    assert excinfo.value.details["failed_at"] == TurnState.COMPLETED.value


async def test_title_refresh_runs_after_persist(session, seed, identity):
    await seed("c1", messages=[("user", "wifi drops")])
    completions = FakeCompletions(["Restart the router."], title="Wifi Dropping Issue")
    controller = make_controller(identity, completions, with_titles=True)

    result = await controller.handle_turn(
        {"idToken": TOKEN, "conversationId": "c1"}, db_session=session
    )

    assert result.title == "Wifi Dropping Issue"
    async with session.begin():
        conv = await repository.get_conversation(session, user_id=USER_ID, conversation_id="c1")
    assert conv.title == "Wifi Dropping Issue"
    assert conv.last_message == "Restart the router."


async def test_title_failure_does_not_fail_turn(session, seed, identity):
    await seed("c1", messages=[("user", "wifi drops")])
    completions = FakeCompletions(["Restart the router."])
    controller = make_controller(identity, completions, with_titles=True)

    async def broken_title(history, **kwargs):
        raise ProviderError("title model unavailable", status=400)

    controller.title_refresher.invoker.generate_title = broken_title

    result = await controller.handle_turn(
        {"idToken": TOKEN, "conversationId": "c1"}, db_session=session
    )
    assert result.state == TurnState.DONE
    assert result.title is None


async def test_title_refresh_shares_the_turn_deadline(session, seed, identity):
    await seed("c1", messages=[("user", "wifi drops")])
    completions = FakeCompletions(["Restart the router."], title="Wifi Dropping Issue")
    completions.delay = 0.3
    controller = make_controller(
        identity, completions, with_titles=True, timeout_seconds=0.4, title_min_seconds=0
    )
    loop = asyncio.get_running_loop()
    started = loop.time()

    result = await controller.handle_turn(
        {"idToken": TOKEN, "conversationId": "c1"}, db_session=session
    )

    # Title call got only what was left and timed out
    assert loop.time() - started < 0.55
    assert result.state == TurnState.DONE
    assert result.title is None
    assert len(completions.calls) == 2


async def test_title_skipped_when_too_little_time_left(session, seed, identity):
    await seed("c1", messages=[("user", "wifi drops")])
    completions = FakeCompletions(["Restart the router."], title="Wifi Dropping Issue")
    completions.delay = 0.3
    controller = make_controller(
        identity, completions, with_titles=True, timeout_seconds=0.4, title_min_seconds=0.2
    )
    loop = asyncio.get_running_loop()
    started = loop.time()

    result = await controller.handle_turn(
        {"idToken": TOKEN, "conversationId": "c1"}, db_session=session
    )

    assert loop.time() - started < 0.4
    assert result.title is None
    assert len(completions.calls) == 1
    rows = await _messages(session)
    assert rows[-1].content == "Restart the router."


async def test_concurrent_turns_see_each_others_replies(db, seed, identity):
    await seed("c1", messages=[("user", "wifi drops")])
    completions = FakeCompletions(["first reply", "second reply"])
    completions.delay = 0.05
    controller = make_controller(identity, completions)
    payload = {"idToken": TOKEN, "conversationId": "c1"}

    async def turn():
        async with db.get_session() as s:
            return await controller.handle_turn(dict(payload), db_session=s)

    first, second = await asyncio.gather(turn(), turn())

    sizes = [len(c["messages"]) - 1 for c in completions.chat_calls]
    assert sizes == [1, 2]
    assert completions.chat_calls[1]["messages"][-1] == {
        "role": "assistant",
        "content": "first reply",
    }
    assert sorted([first.context_size, second.context_size]) == [1, 2]
