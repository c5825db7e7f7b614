"""
Graph service: the conversational entry point.

Starts or resumes a workflow run for a thread, tees its fragments into the
thread's display channel and the multi-turn store, and tears the session
down exactly once on completion, error or stop.
"""

import asyncio
import json
import uuid
from typing import Any, AsyncIterator, Dict, Optional

from loguru import logger
from pydantic import BaseModel, Field

from dataagent.config.settings import Settings
from dataagent.constants import HUMAN_FEEDBACK, PLANNER, REPORT_GENERATOR
from dataagent.graph.executor import GraphExecutor, GraphRun
from dataagent.graph.fragments import ContentKind, OutputFragment
from dataagent.memory.multi_turn import MultiTurnContextStore, NO_HISTORY
from dataagent.service.sessions import ConversationSessionRegistry, SessionContext
from dataagent.utils.errors import SnapshotNotFoundError

RESULT_NODE = "result"


class GraphRequest(BaseModel):
    """A new question, or a reviewer's answer to a paused plan"""

    thread_id: Optional[str] = None
    agent_id: str = ""
    query: str = ""
    human_feedback: bool = False
    approved: bool = False
    feedback_content: str = ""
    nl2sql_only: bool = False
    human_review_enabled: Optional[bool] = None


class GraphService:
    def __init__(
        self,
        settings: Settings,
        executor: GraphExecutor,
        sessions: Optional[ConversationSessionRegistry] = None,
        multi_turn: Optional[MultiTurnContextStore] = None,
        resources: Optional[Dict[str, Any]] = None,
    ):
        self.settings = settings
        self.executor = executor
        self.sessions = sessions or ConversationSessionRegistry(settings.display_queue_size)
        self.multi_turn = multi_turn or MultiTurnContextStore(
            settings.max_turn_history, settings.max_plan_length
        )
        # Long-lived collaborators owned by the service (worker pool, engines)
        self.resources = resources or {}

    async def run_or_resume(self, request: GraphRequest) -> AsyncIterator[OutputFragment]:
        """
        Stream a run's fragments to the caller.

        The run itself is pumped by a background task into the session's
        display channel; this generator only drains the channel. If the
        caller goes away before the run ends, the thread is stopped.
        """
        thread_id = request.thread_id or str(uuid.uuid4())
        session = self.sessions.register(thread_id)
        try:
            run = self._prepare(thread_id, request)
        except Exception:
            self.sessions.teardown(thread_id, expected=session)
            raise

        task = asyncio.create_task(self._pump(thread_id, session, run), name=f"graph-run-{thread_id}")
        session.attach_task(task)
        try:
            async for fragment in session.fragments():
                yield fragment
        finally:
            if self.sessions.get(thread_id) is session:
                logger.info(f"Consumer left before run ended, stopping thread {thread_id}")
                await self.stop(thread_id)

    def _prepare(self, thread_id: str, request: GraphRequest) -> GraphRun:
        if request.human_feedback:
            if not self.executor.has_snapshot(thread_id):
                raise SnapshotNotFoundError(thread_id)
            feedback: Dict[str, Any] = {
                "human_feedback_approved": request.approved,
                "human_feedback_content": request.feedback_content,
            }
            if not request.approved:
                # The rejected plan's turn is re-opened so the corrected plan replaces it
                self.multi_turn.restart_last_turn(thread_id)
                feedback["multi_turn_context"] = self.multi_turn.build_context(thread_id)
            return self.executor.resume(thread_id, feedback)

        self.multi_turn.begin_turn(thread_id, request.query)
        review = request.human_review_enabled
        inputs = {
            "input": request.query,
            "agent_id": request.agent_id,
            "nl2sql_only": request.nl2sql_only,
            "human_review_enabled": self.settings.human_review_enabled if review is None else review,
            "multi_turn_context": self.multi_turn.build_context(thread_id),
        }
        return self.executor.start(thread_id, inputs)

    async def _pump(self, thread_id: str, session: SessionContext, run: GraphRun) -> None:
        last_node = None
        try:
            async for fragment in run:
                if fragment.node_name == PLANNER:
                    self.multi_turn.append_planner_chunk(thread_id, fragment.text)
                session.offer(fragment)
                last_node = fragment.node_name
        except asyncio.CancelledError:
            logger.info(f"Run cancelled for thread {thread_id}")
            raise
        except Exception as e:
            logger.exception(f"Run failed for thread {thread_id}")
            self.multi_turn.discard_pending(thread_id)
            self.sessions.teardown(thread_id, error=e, expected=session)
            return

        closing = _closing_fragment(run, last_node)
        if closing is not None:
            session.offer_final(closing)
        # Paused runs commit too: a reviewer rejection re-opens this turn
        self.multi_turn.finish_turn(thread_id)
        self.sessions.teardown(thread_id, expected=session)

    async def stop(self, thread_id: str) -> bool:
        """Cancel a live run and drop any paused run; safe to call repeatedly"""
        self.multi_turn.discard_pending(thread_id)
        stopped = self.sessions.teardown(thread_id)
        discarded = await self.executor.discard(thread_id)
        if stopped or discarded:
            logger.info(f"Stopped thread {thread_id} (live={stopped}, paused={discarded})")
        return stopped or discarded

    async def nl2sql(self, query: str, agent_id: str) -> str:
        """Run the pipeline in SQL-only mode and return the accepted SQL"""
        state = await self.executor.invoke(
            {
                "input": query,
                "agent_id": agent_id,
                "nl2sql_only": True,
                "human_review_enabled": False,
                "multi_turn_context": NO_HISTORY,
            }
        )
        sql = state.get("final_sql") or state.get("sql_optimize_output") or ""
        if not sql:
            logger.warning(f"NL2SQL produced no SQL: {state.get('result')}")
        return sql

    def shutdown(self) -> None:
        self.sessions.shutdown()
        pool = self.resources.get("worker_pool")
        if pool is not None:
            pool.shutdown(self.settings.worker_shutdown_timeout)
        engines = self.resources.get("engines")
        if engines is not None:
            engines.dispose()


def _closing_fragment(run: GraphRun, last_node: Optional[str]) -> Optional[OutputFragment]:
    """Tell the client how the run ended when the last streamed node did not"""
    state = run.state
    if run.suspended:
        payload = {
            "awaiting_feedback": True,
            "suspended_before": run.suspended_node,
            "plan": state.get("plan") or state.get("plan_output"),
        }
        return OutputFragment(
            node_name=HUMAN_FEEDBACK,
            text=json.dumps(payload, ensure_ascii=False, default=str),
            content_kind=ContentKind.JSON,
        )
    result = state.get("result")
    if result and last_node != REPORT_GENERATOR:
        return OutputFragment(node_name=RESULT_NODE, text=str(result), content_kind=ContentKind.TEXT)
    return None


def build_service(settings: Settings) -> GraphService:
    """Wire the production collaborators into a GraphService"""
    from dataagent.agents.context import AgentContext
    from dataagent.agents.workflow import build_data_agent_workflow
    from dataagent.infra.database import DatasourceResolver, EngineCache, SqlExecutor
    from dataagent.infra.knowledge import ChromaKnowledgeStore
    from dataagent.infra.python_executor import SubprocessPythonExecutor
    from dataagent.infra.worker_pool import WorkerPool
    from dataagent.llm.client import LangChainModelClient, ModelRegistry, create_llm
    from dataagent.schema.closure import SchemaClosureBuilder
    from dataagent.schema.source import KnowledgeSchemaSource

    pool = WorkerPool(settings.worker_pool_size)
    engines = EngineCache()
    knowledge = ChromaKnowledgeStore(settings.chroma_persist_dir)
    ctx = AgentContext(
        settings=settings,
        llm=ModelRegistry(lambda: LangChainModelClient(create_llm(settings=settings))),
        knowledge=knowledge,
        datasources=DatasourceResolver(settings, knowledge=knowledge),
        closure_builder=SchemaClosureBuilder(KnowledgeSchemaSource(knowledge)),
        sql_executor=SqlExecutor(pool, engines),
        python_executor=SubprocessPythonExecutor(settings.python_timeout_seconds),
    )
    executor = GraphExecutor(build_data_agent_workflow(ctx), max_steps=settings.graph_max_steps)
    return GraphService(settings, executor, resources={"worker_pool": pool, "engines": engines})
