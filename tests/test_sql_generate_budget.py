"""
Tests for the SQL generation retry budget.
"""

from dataagent.agents.nodes.sql_generate import sql_generate_node
from dataagent.agents.routing import route_after_sql_generate
from dataagent.agents.nodes.plan_executor import plan_executor_node
from dataagent.constants import SQL_GENERATE, SQL_GENERATE_END, SQL_OPTIMIZE
from dataagent.graph.state import END
from dataagent.models.schema import SchemaDTO
from dataagent.schema.source import KnowledgeSchemaSource

from fakes import (
    AGENT_ID,
    FakeSqlExecutor,
    ScriptedLLM,
    analysis_script,
    collect,
    make_context,
    make_executor,
    make_settings,
    run_async,
    shop_knowledge,
)


def test_semantic_failures_exhaust_budget_without_third_attempt():
    llm = ScriptedLLM(analysis_script(**{
        "SEMANTIC CONSISTENCY CHECK": '{"passed": false, "reason": "groups by month, daily totals were asked"}',
    }))
    sql = FakeSqlExecutor()
    ctx = make_context(llm, settings=make_settings(max_sql_retry_count=2), sql_executor=sql)
    executor = make_executor(ctx)

    async def scenario():
        run = executor.start("budget", {"input": "daily order totals in 2024", "agent_id": AGENT_ID})
        await collect(run)
        return run.state

    state = run_async(scenario())

    assert llm.tasks.count("SQL GENERATION") == 2, "no third generation attempt"
    assert state["sql_generate_output"] == SQL_GENERATE_END
    assert state["budget_exhausted"] == "sql_generate"
    assert "2 attempts" in state["result"]
    assert sql.executed == []
    # Second attempt saw the semantic reason
    last_prompt = [user for task, user in llm.calls if task == "SQL GENERATION"][-1]
    assert "daily totals were asked" in last_prompt


def test_execution_failures_feed_back_into_generation():
    llm = ScriptedLLM(analysis_script())
    sql = FakeSqlExecutor(failures=["no such column: create_at"])
    ctx = make_context(llm, settings=make_settings(max_sql_retry_count=3), sql_executor=sql)
    executor = make_executor(ctx)

    async def scenario():
        run = executor.start("exec-retry", {"input": "daily order totals in 2024", "agent_id": AGENT_ID})
        await collect(run)
        return run.state

    state = run_async(scenario())

    assert llm.tasks.count("SQL GENERATION") == 2
    retry_prompt = [user for task, user in llm.calls if task == "SQL GENERATION"][1]
    assert "no such column: create_at" in retry_prompt
    assert len(sql.executed) == 2
    assert state.get("budget_exhausted") is None
    assert state["result"].startswith("# Daily order totals")


def test_entering_at_max_returns_end_without_model_call():
    llm = ScriptedLLM({})
    ctx = make_context(llm, settings=make_settings(max_sql_retry_count=2))

    update = run_async(sql_generate_node({"sql_generate_count": 2, "agent_id": AGENT_ID}, ctx))

    assert update["sql_generate_output"] == SQL_GENERATE_END
    assert update["budget_exhausted"] == "sql_generate"
    assert llm.calls == []


def test_empty_output_retries_until_counter_reaches_max():
    settings = make_settings(max_sql_retry_count=2)
    assert route_after_sql_generate({"sql_generate_output": "", "sql_generate_count": 1}, settings) == SQL_GENERATE
    assert route_after_sql_generate({"sql_generate_output": "", "sql_generate_count": 2}, settings) == END
    assert route_after_sql_generate({"sql_generate_output": SQL_GENERATE_END}, settings) == END
    assert route_after_sql_generate({"sql_generate_output": "SELECT 1"}, settings) == SQL_OPTIMIZE


def test_empty_model_output_counts_as_an_attempt():
    llm = ScriptedLLM({"SQL GENERATION": "   "})
    ctx = make_context(llm, settings=make_settings(max_sql_retry_count=2))

    update = run_async(sql_generate_node({"sql_generate_count": 1, "agent_id": AGENT_ID}, ctx))

    assert update["sql_generate_output"] == ""
    assert update["sql_generate_count"] == 2
    assert update["budget_exhausted"] == "sql_generate"


def test_schema_missing_loop_is_bounded_by_the_generation_budget():
    llm = ScriptedLLM(analysis_script(**{
        "SQL GENERATION": "SCHEMA_MISSING: need a payments table",
        "SCHEMA ADVICE": '{"tables": []}',
    }))
    ctx = make_context(llm, settings=make_settings(max_sql_retry_count=2, graph_max_steps=60))
    executor = make_executor(ctx)

    async def scenario():
        run = executor.start("payments", {"input": "refund totals per payment method", "agent_id": AGENT_ID})
        await collect(run)
        return run.state

    state = run_async(scenario())

    assert llm.tasks.count("SQL GENERATION") == 2
    assert llm.tasks.count("EXECUTION PLANNING") == 2, "one re-plan between the two attempts"
    assert state["budget_exhausted"] == "sql_generate"
    assert "2 attempts" in state["result"]


def test_replanned_step_keeps_counters_and_new_step_resets_them():
    ctx = make_context(ScriptedLLM({}))
    plan = (
        '{"thought_process": "two queries", "execution_plan": ['
        '{"step": 1, "tool_to_use": "SQL_GENERATE", "tool_parameters": {"description": "orders"}},'
        '{"step": 2, "tool_to_use": "SQL_GENERATE", "tool_parameters": {"description": "users"}}]}'
    )
    base = {"plan_output": plan, "nl2sql_only": True, "agent_id": AGENT_ID}

    same = run_async(plan_executor_node(
        {**base, "plan_current_step": 1, "sql_generate_step": 1, "sql_generate_count": 1}, ctx
    ))
    assert same["plan_next_node"] == SQL_GENERATE
    assert "sql_generate_count" not in same

    fresh = run_async(plan_executor_node(
        {**base, "plan_current_step": 2, "sql_generate_step": 1, "sql_generate_count": 2}, ctx
    ))
    assert fresh["sql_generate_count"] == 0
    assert fresh["sql_generate_step"] == 2


def test_widened_schema_on_last_attempt_ends_the_run():
    knowledge = shop_knowledge()
    llm = ScriptedLLM({
        "SQL GENERATION": "SCHEMA_MISSING: buyer region",
        "SCHEMA ADVICE": '{"tables": ["users"]}',
    })
    settings = make_settings(max_sql_retry_count=2)
    ctx = make_context(llm, settings=settings, knowledge=knowledge)
    schema = SchemaDTO(tables=KnowledgeSchemaSource(knowledge).fetch_tables(AGENT_ID, ["orders"]))

    update = run_async(sql_generate_node(
        {"sql_generate_count": 1, "agent_id": AGENT_ID, "schema": schema.model_dump()}, ctx
    ))

    assert "users" in SchemaDTO.model_validate(update["schema"]).table_names
    assert update["sql_generate_count"] == 2
    assert update["budget_exhausted"] == "sql_generate"
    assert "2 attempts" in update["result"]
    assert route_after_sql_generate(update, settings) == END


def test_model_reply_matching_old_end_marker_is_treated_as_sql():
    llm = ScriptedLLM({"SQL GENERATION": "END"})
    settings = make_settings(max_sql_retry_count=3)
    ctx = make_context(llm, settings=settings)

    update = run_async(sql_generate_node({"sql_generate_count": 0, "agent_id": AGENT_ID}, ctx))

    assert update["sql_generate_output"] == "END"
    assert "budget_exhausted" not in update
    assert route_after_sql_generate(update, settings) == SQL_OPTIMIZE
    assert route_after_sql_generate({"sql_generate_output": "", "budget_exhausted": "sql_generate"}, settings) == END
