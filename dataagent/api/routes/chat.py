"""
Chat streaming endpoints using Server-Sent Events (SSE)

Each fragment of a run is sent as `data: <OutputFragment json>`; a failed
run ends with an `event: error` frame.
"""

import uuid
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from loguru import logger

from dataagent.api.models import (
    ChatStreamRequest,
    Nl2SqlRequest,
    Nl2SqlResponse,
    StopResponse,
    StreamErrorEvent,
)
from dataagent.service.graph_service import GraphRequest, GraphService
from dataagent.utils.errors import SessionBusyError

router = APIRouter(prefix="/api", tags=["chat"])


def get_service(request: Request) -> GraphService:
    return request.app.state.service


async def stream_graph_response(service: GraphService, request: GraphRequest) -> AsyncGenerator[str, None]:
    fragments = service.run_or_resume(request)
    try:
        async for fragment in fragments:
            yield f"data: {fragment.model_dump_json()}\n\n"
    except Exception as e:
        # Fragments already sent stay sent; the client sees an error frame last
        logger.exception("Stream error occurred")
        error_event = StreamErrorEvent(thread_id=request.thread_id, error=str(e) or type(e).__name__)
        yield f"event: error\ndata: {error_event.model_dump_json()}\n\n"
    finally:
        await fragments.aclose()


@router.post("/chat/stream")
async def chat_stream(body: ChatStreamRequest, service: GraphService = Depends(get_service)):
    """
    Stream a data agent run.

    **Response:** `text/event-stream`, one `data:` frame per output fragment:
    ```json
    {"node_name": "sql_generate", "text": "SELECT ...", "content_kind": "sql"}
    ```
    """
    if body.human_feedback:
        if not body.thread_id or not service.executor.has_snapshot(body.thread_id):
            raise HTTPException(status_code=404, detail="No paused run to resume for this thread")
    elif not body.query.strip():
        raise HTTPException(status_code=422, detail="query must not be empty")
    if body.thread_id and service.sessions.get(body.thread_id) is not None:
        raise HTTPException(status_code=409, detail=str(SessionBusyError(body.thread_id)))

    logger.info(
        f"Stream request - thread={body.thread_id}, agent={body.agent_id}, feedback={body.human_feedback}"
    )
    request = GraphRequest(**body.model_dump())
    request.thread_id = request.thread_id or str(uuid.uuid4())
    return StreamingResponse(
        stream_graph_response(service, request),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
            "X-Thread-Id": request.thread_id,
        },
    )


@router.post("/chat/{thread_id}/stop", response_model=StopResponse)
async def chat_stop(thread_id: str, service: GraphService = Depends(get_service)):
    stopped = await service.stop(thread_id)
    return StopResponse(thread_id=thread_id, stopped=stopped)


@router.post("/nl2sql", response_model=Nl2SqlResponse)
async def nl2sql(body: Nl2SqlRequest, service: GraphService = Depends(get_service)):
    """Translate a question to SQL without executing it"""
    sql = await service.nl2sql(body.query, body.agent_id)
    return Nl2SqlResponse(sql=sql)
