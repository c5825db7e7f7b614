"""
Tests for the per-thread multi-turn context store.
"""

from dataagent.memory.multi_turn import NO_HISTORY, MultiTurnContextStore


def commit(store, thread_id, question, *chunks):
    store.begin_turn(thread_id, question)
    for chunk in chunks:
        store.append_planner_chunk(thread_id, chunk)
    return store.finish_turn(thread_id)


def test_turn_is_committed_from_planner_chunks():
    store = MultiTurnContextStore()
    turn = commit(store, "t1", "orders per day?", '{"thought_process": ', '"daily sums"}')

    assert turn.user_question == "orders per day?"
    assert turn.plan_summary == '{"thought_process": "daily sums"}'
    assert store.build_context("t1") == 'User: orders per day?\nAI plan: {"thought_process": "daily sums"}'


def test_empty_history_renders_placeholder():
    assert MultiTurnContextStore().build_context("nobody") == NO_HISTORY


def test_turn_without_plan_is_not_recorded():
    store = MultiTurnContextStore()
    assert commit(store, "t1", "hello there") is None
    assert store.history("t1") == []
    assert store.pending_question("t1") is None


def test_history_keeps_most_recent_turns():
    store = MultiTurnContextStore(max_turn_history=2)
    for n in range(1, 4):
        commit(store, "t1", f"q{n}", f"plan {n}")
    assert [t.user_question for t in store.history("t1")] == ["q2", "q3"]


def test_long_plans_are_abbreviated():
    store = MultiTurnContextStore(max_plan_length=20)
    turn = commit(store, "t1", "q", "x" * 100)
    assert len(turn.plan_summary) == 20
    assert turn.plan_summary.endswith("...")


def test_rejection_reinstates_last_turn_as_pending():
    store = MultiTurnContextStore()
    commit(store, "t1", "first question", "plan A")
    commit(store, "t1", "revenue by region last quarter", "plan B")

    question = store.restart_last_turn("t1")

    assert question == "revenue by region last quarter"
    assert store.pending_question("t1") == "revenue by region last quarter"
    assert [t.user_question for t in store.history("t1")] == ["first question"]

    # Corrected plan replaces the rejected one instead of adding a turn
    store.append_planner_chunk("t1", "plan B2")
    store.finish_turn("t1")
    history = store.history("t1")
    assert [t.user_question for t in history] == ["first question", "revenue by region last quarter"]
    assert history[-1].plan_summary == "plan B2"


def test_restart_without_history_is_a_no_op():
    store = MultiTurnContextStore()
    assert store.restart_last_turn("t1") is None
    assert store.pending_question("t1") is None


def test_discard_pending_drops_uncommitted_turn():
    store = MultiTurnContextStore()
    store.begin_turn("t1", "q")
    store.append_planner_chunk("t1", "partial")
    store.discard_pending("t1")
    assert store.finish_turn("t1") is None
    assert store.history("t1") == []


def test_threads_are_isolated():
    store = MultiTurnContextStore()
    commit(store, "a", "qa", "pa")
    commit(store, "b", "qb", "pb")
    store.clear("a")
    assert store.history("a") == []
    assert [t.user_question for t in store.history("b")] == ["qb"]
