"""REST API endpoints"""

import logging
from typing import List, Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from toolchat.core import config as models_config
from toolchat.core.chat_agent import ChatAgent
from toolchat.core.error_handling import classify_error, invalid_request_error
from toolchat.core.llm_provider import ConversationTurn, MediaAttachment
from toolchat.core.tool_calling import list_tools

logger = logging.getLogger(__name__)

app = FastAPI(title="toolchat")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # dev setting; pin the UI origin in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_chat_agent: Optional[ChatAgent] = None


def get_chat_agent() -> ChatAgent:
    global _chat_agent
    if _chat_agent is None:
        _chat_agent = ChatAgent()
    return _chat_agent


class MediaPayload(BaseModel):
    data: str
    mimeType: str


class HistoryItem(BaseModel):
    role: str
    content: str = ""


class ChatRequest(BaseModel):
    message: str = ""
    media: Optional[MediaPayload] = None
    history: List[HistoryItem] = []
    provider: str = "google"
    model: str = "gemini-2.5-flash"
    enableTools: bool = True


@app.on_event("startup")
def startup():
    """Load the provider catalog once; a broken models.json is fatal"""
    try:
        providers = models_config.list_providers()
    except models_config.ModelsConfigError as e:
        raise RuntimeError(f"Failed to load models config: {e}")

    for provider in providers:
        if provider.requires_api_key and not models_config.get_api_key(provider):
            logger.warning(f"{provider.api_key_env} is not set; {provider.display_name} requests will fail")


@app.post("/api/chat")
async def chat(req: ChatRequest, agent: ChatAgent = Depends(get_chat_agent)):
    """Run one chat turn, with tool calling when enableTools is set"""

    if not req.message.strip() and not (req.media and req.media.data):
        rejected = invalid_request_error("message or media is required")
        return JSONResponse(status_code=rejected.status, content=rejected.to_dict())

    media = MediaAttachment(data=req.media.data, mime_type=req.media.mimeType) if req.media and req.media.data else None
    history = [ConversationTurn(role=item.role, content=item.content) for item in req.history]

    try:
        result = await agent.run(
            req.message,
            history=history,
            provider=req.provider,
            model=req.model,
            media=media,
            enable_tools=req.enableTools,
        )
    except Exception as e:
        classified = classify_error(
            e,
            req.provider,
            req.model,
            message=req.message,
            has_media=media is not None,
            media_type=media.mime_type if media else None,
        )
        logger.error(f"Chat request failed ({req.provider}/{req.model}): {classified.error}")
        return JSONResponse(status_code=classified.status, content=classified.to_dict())

    return result.to_dict()


@app.get("/api/providers")
def providers():
    """Provider/model catalog for the model selector"""
    return {"providers": [p.to_dict() for p in models_config.list_providers()]}


@app.get("/api/tools")
def tools():
    """Tool definitions in function-calling format"""
    return {"tools": [t.to_openai_format() for t in list_tools()]}


@app.get("/api/health")
def health():
    return {"status": "ok"}
