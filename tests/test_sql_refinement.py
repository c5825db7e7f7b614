"""
Tests for the score-driven SQL refinement loop (sql_optimize node).
"""

import pytest

from dataagent.agents.nodes.sql_optimize import sql_optimize_node
from dataagent.sql.scoring import SqlQualityScore

from fakes import ScriptedLLM, make_context, make_settings, run_async


def candidate(n: int) -> str:
    return f"SELECT c{n} FROM orders WHERE id = {n}"


class ScriptedScorer:
    """Total score per candidate, looked up by the round number in the SQL"""

    def __init__(self, totals):
        self.totals = totals
        self.scored = []

    def __call__(self, sql):
        self.scored.append(sql)
        n = int(sql.rsplit("= ", 1)[1])
        total = self.totals[n - 1]
        return SqlQualityScore(sql=sql, syntax=total, security=total, performance=total)


def refine(totals, **settings):
    llm = ScriptedLLM({"SQL OPTIMIZATION": [f"```sql\n{candidate(n)}\n```" for n in range(1, len(totals) + 1)]})
    scorer = ScriptedScorer(totals)
    ctx = make_context(llm, settings=make_settings(**settings), scorer=scorer)
    state = {"sql_generate_output": "SELECT c0 FROM orders", "schema": {}}
    history = []

    async def loop():
        while not state.get("sql_optimize_finished"):
            state.update(await sql_optimize_node(state, ctx))
            history.append((state["sql_optimize_count"], state["sql_optimize_best_score"], state["sql_optimize_best_sql"]))
            assert len(history) <= 50, "refinement loop did not terminate"

    run_async(loop())
    return state, history, llm


def test_candidate_above_threshold_at_round_five_ends_the_loop():
    state, history, llm = refine(
        [0.5, 0.3, 0.8, 0.6, 0.97, 0.99, 0.99, 0.99, 0.99, 0.99],
        max_sql_optimize_count=10,
        sql_score_threshold=0.95,
    )

    assert state["sql_optimize_count"] == 5
    assert llm.tasks.count("SQL OPTIMIZATION") == 5
    assert state["sql_optimize_best_sql"] == candidate(5)
    assert state["sql_optimize_output"] == candidate(5) + ";"
    assert state["sql_optimize_below_threshold"] is False


def test_best_score_is_monotonic_and_best_sql_is_argmax():
    totals = [0.4, 0.7, 0.2, 0.7, 0.5, 0.9]
    state, history, _ = refine(totals, max_sql_optimize_count=6, sql_score_threshold=0.95)

    scores = [best for _, best, _ in history]
    assert scores == sorted(scores), "best score never decreases"
    for rounds, best, best_sql in history:
        seen = totals[:rounds]
        assert best == pytest.approx(max(seen))
        # Ties keep the earlier candidate
        assert best_sql == candidate(seen.index(max(seen)) + 1)


def test_exhausted_budget_accepts_best_so_far_below_threshold():
    state, history, llm = refine([0.6, 0.8, 0.7], max_sql_optimize_count=3, sql_score_threshold=0.95)

    assert state["sql_optimize_finished"] is True
    assert state["sql_optimize_count"] == 3
    assert llm.tasks.count("SQL OPTIMIZATION") == 3
    assert state["sql_optimize_output"] == candidate(2) + ";"
    assert state["sql_optimize_below_threshold"] is True


def test_score_equal_to_threshold_does_not_stop_the_loop():
    threshold = SqlQualityScore(sql="", syntax=0.9, security=0.9, performance=0.9).total
    state, _, _ = refine([0.9, 0.99], max_sql_optimize_count=5, sql_score_threshold=threshold)
    assert state["sql_optimize_count"] == 2
    assert state["sql_optimize_output"] == candidate(2) + ";"


def test_zero_round_budget_accepts_generated_sql():
    llm = ScriptedLLM({})
    ctx = make_context(llm, settings=make_settings(max_sql_optimize_count=0))
    state = {"sql_generate_output": "SELECT a FROM t WHERE b = 1"}

    update = run_async(sql_optimize_node(state, ctx))

    assert update["sql_optimize_finished"] is True
    assert update["sql_optimize_output"] == "SELECT a FROM t WHERE b = 1;"
    assert llm.calls == []
