from types import SimpleNamespace

from agent_sdk_bridge.session.incoming_state import (
    MAX_INCOMING_SESSION_STATES,
    build_incoming_session_state,
    build_prompt_query_input_with_incoming_session,
    merge_incoming_session_state,
    read_session_id_from_query_messages,
)
from agent_sdk_bridge.session.prompt_state import PromptSessionState
from tests.helpers import assistant, prompt_of, system, user


def test_build_records_count_and_boundary_signatures() -> None:
    prompt = prompt_of(user("first"), assistant("reply"))

    state = build_incoming_session_state("conv-1", "sess-1", prompt)

    assert state.prompt_message_count == 2
    assert state.first_prompt_message_signature == "first"
    assert state.last_prompt_message_signature == "[assistant]\nreply"


def test_single_user_message_with_known_key_resumes() -> None:
    known = build_incoming_session_state("conv-1", "sess-1", prompt_of(user("earlier")))

    query_input = build_prompt_query_input_with_incoming_session(
        prompt_of(user("only the latest turn")),
        "conv-1",
        [],
        [known],
    )

    assert query_input.resume_session_id == "sess-1"
    assert query_input.prompt == "only the latest turn"


def test_full_history_with_matching_signatures_sends_the_appended_messages() -> None:
    first = prompt_of(system("sys"), user("a"))
    known = build_incoming_session_state("conv-1", "sess-1", first)

    query_input = build_prompt_query_input_with_incoming_session(
        prompt_of(system("sys"), user("a"), assistant("b"), user("c")),
        "conv-1",
        [],
        [known],
    )

    assert query_input.resume_session_id == "sess-1"
    assert query_input.prompt == "c"


def test_reused_key_with_different_history_does_not_resume() -> None:
    known = build_incoming_session_state("conv-1", "sess-1", prompt_of(user("a"), assistant("b")))

    query_input = build_prompt_query_input_with_incoming_session(
        prompt_of(user("something else"), assistant("b"), user("c")),
        "conv-1",
        [],
        [known],
    )

    assert query_input.resume_session_id is None
    assert query_input.prompt == "something else\n\n[assistant]\nb\n\nc"


def test_unknown_key_sends_full_prompt_even_if_a_prefix_state_matches() -> None:
    states = [PromptSessionState(session_id="s1", serialized_prompt_messages=("a",))]

    query_input = build_prompt_query_input_with_incoming_session(
        prompt_of(user("a"), user("b")),
        "conv-unknown",
        states,
        [],
    )

    assert query_input.resume_session_id is None


def test_without_key_prefix_matching_applies() -> None:
    states = [PromptSessionState(session_id="s1", serialized_prompt_messages=("a",))]

    query_input = build_prompt_query_input_with_incoming_session(prompt_of(user("a"), user("b")), None, states, [])

    assert query_input.resume_session_id == "s1"
    assert query_input.prompt == "b"


def test_merge_replaces_same_key_and_is_bounded() -> None:
    states = []
    for index in range(MAX_INCOMING_SESSION_STATES + 3):
        states = merge_incoming_session_state(
            states,
            build_incoming_session_state(f"k{index}", f"s{index}", prompt_of(user("x"))),
        )
    states = merge_incoming_session_state(states, build_incoming_session_state("k5", "new", prompt_of(user("x"))))

    assert len(states) == MAX_INCOMING_SESSION_STATES
    assert states[0].session_id == "new"
    assert sum(1 for state in states if state.incoming_session_key == "k5") == 1


def test_session_id_prefers_result_then_assistant_then_init() -> None:
    result = SimpleNamespace(session_id="")
    assistant_turn = SimpleNamespace(session_id="from-assistant")
    init = SimpleNamespace(session_id="from-init")

    assert read_session_id_from_query_messages(result, assistant_turn, init) == "from-assistant"
    assert read_session_id_from_query_messages(None, None, init) == "from-init"
    assert read_session_id_from_query_messages() is None
