from dataagent.service.sessions import ConversationSessionRegistry, SessionContext
from dataagent.service.graph_service import GraphRequest, GraphService, build_service

__all__ = [
    "ConversationSessionRegistry",
    "SessionContext",
    "GraphRequest",
    "GraphService",
    "build_service",
]
