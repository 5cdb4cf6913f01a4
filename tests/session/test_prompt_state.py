from agent_sdk_bridge.provider.prompt import serialize_prompt_messages
from agent_sdk_bridge.session.prompt_state import (
    MAX_PROMPT_SESSION_STATES,
    PromptSessionState,
    build_prompt_query_input,
    find_longest_prefix_state,
    merge_prompt_session_state,
)
from tests.helpers import assistant, prompt_of, system, user


def _state(session_id: str, *serialized: str) -> PromptSessionState:
    return PromptSessionState(session_id=session_id, serialized_prompt_messages=tuple(serialized))


def test_first_turn_sends_full_prompt_without_resume() -> None:
    prompt = prompt_of(system("sys"), user("안녕"))

    query_input = build_prompt_query_input(prompt, [])

    assert query_input.prompt == "안녕"
    assert query_input.resume_session_id is None
    assert query_input.serialized_prompt_messages == ("[system]\nsys", "안녕")


def test_second_turn_resumes_and_sends_only_the_new_user_message() -> None:
    first = prompt_of(user("안녕"))
    states = [_state("s1", *serialize_prompt_messages(first))]
    second = prompt_of(user("안녕"), assistant("반가워요"), user("다음"))

    query_input = build_prompt_query_input(second, states)

    assert query_input.resume_session_id == "s1"
    assert query_input.prompt == "다음"
    assert query_input.serialized_prompt_messages == tuple(serialize_prompt_messages(second))


def test_identical_prompt_is_sent_in_full() -> None:
    prompt = prompt_of(user("hi"))
    states = [_state("s1", *serialize_prompt_messages(prompt))]

    query_input = build_prompt_query_input(prompt, states)

    assert query_input.resume_session_id is None
    assert query_input.prompt == "hi"


def test_delta_of_only_system_messages_falls_back_to_full_prompt() -> None:
    states = [_state("s1", "hi")]

    query_input = build_prompt_query_input(prompt_of(user("hi"), system("late")), states)

    assert query_input.resume_session_id is None
    assert query_input.prompt == "hi"


def test_delta_of_only_assistant_text_is_still_sent() -> None:
    states = [_state("s1", "hi")]

    query_input = build_prompt_query_input(prompt_of(user("hi"), assistant("answer")), states)

    assert query_input.resume_session_id == "s1"
    assert query_input.prompt == "[assistant]\nanswer"


def test_longest_prefix_wins() -> None:
    states = [_state("short", "a"), _state("long", "a", "[assistant]\nb"), _state("other", "x")]

    match = find_longest_prefix_state(["a", "[assistant]\nb", "c"], states)

    assert match is not None and match.session_id == "long"


def test_empty_state_never_matches() -> None:
    assert find_longest_prefix_state(["a"], [_state("empty")]) is None


def test_merge_puts_newest_first_and_drops_superseded_states() -> None:
    previous = [_state("s1", "a"), _state("s2", "b"), _state("s3", "c")]

    merged = merge_prompt_session_state(previous, _state("s2", "b", "c"))

    assert [state.session_id for state in merged] == ["s2", "s1", "s3"]
    assert merge_prompt_session_state(merged, _state("s9", "a"))[0].session_id == "s9"
    assert [state.session_id for state in merge_prompt_session_state(merged, _state("s9", "a"))] == ["s9", "s2", "s3"]


def test_merge_is_bounded() -> None:
    states: list[PromptSessionState] = []
    for index in range(MAX_PROMPT_SESSION_STATES + 5):
        states = merge_prompt_session_state(states, _state(f"s{index}", str(index)))

    assert len(states) == MAX_PROMPT_SESSION_STATES
    assert states[0].session_id == f"s{MAX_PROMPT_SESSION_STATES + 4}"
