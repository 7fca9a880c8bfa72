from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from functools import lru_cache
from typing import List, Optional
import logging

from config import CHAT_MIN_LENGTH, Settings, get_settings
from github_ops import GitHubOps
from models import Artifact, DeployedWebsite, ProvisionResult, SavedProject
from pipeline import ProvisioningPipeline
from session_store import InMemorySessionStore, SessionStore

# Initialize logging early so missing-credential warnings show up at startup
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("website-factory")

_settings = get_settings()
for name, present in _settings.credentials_configured().items():
    if not present:
        logger.warning("No credential configured for %s; it will run in demo mode", name)

app = FastAPI(title=_settings.app_name)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origin_list(),
    allow_methods=["*"],
    allow_headers=["*"],
)

_store = InMemorySessionStore()


def get_store() -> SessionStore:
    return _store


@lru_cache(maxsize=8)
def _pipeline_for(config: tuple) -> ProvisioningPipeline:
    return ProvisioningPipeline.from_settings(Settings(**dict(config)))


def get_pipeline(settings: Settings = Depends(get_settings)) -> ProvisioningPipeline:
    # one pipeline per distinct configuration; the clients hold no request state
    return _pipeline_for(tuple(sorted(settings.model_dump().items())))


class GenerateRequest(BaseModel):
    description: str = ""
    user_id: str = "anonymous"


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=CHAT_MIN_LENGTH)
    user_id: Optional[str] = None
    prior_artifact: Optional[Artifact] = None


class ChatResponse(BaseModel):
    assistant_message: str
    artifact: Artifact
    degraded: bool


class SaveProjectRequest(BaseModel):
    user_id: Optional[str] = None
    name: str = "Untitled website"
    artifact: Artifact


class HistoryResponse(BaseModel):
    projects: List[SavedProject]
    total: int


@app.post("/api/generate-website", response_model=ProvisionResult)
def generate_website(
    req: GenerateRequest,
    pipeline: ProvisioningPipeline = Depends(get_pipeline),
    store: SessionStore = Depends(get_store),
):
    try:
        result = pipeline.provision(req.description, req.user_id)
    except Exception:
        logger.exception("Provisioning failed unexpectedly")
        raise HTTPException(status_code=500, detail="Website generation failed")
    if result.public_url:
        store.record_website(req.user_id, DeployedWebsite(
            url=result.public_url,
            repository_url=result.repository_url or "",
            description=req.description,
        ))
    return result


@app.post("/api/chat", response_model=ChatResponse)
def chat(
    req: ChatRequest,
    pipeline: ProvisioningPipeline = Depends(get_pipeline),
    store: SessionStore = Depends(get_store),
):
    try:
        history = store.recent_turns(req.user_id) if req.user_id else []
        result = pipeline.chat(req.message, req.prior_artifact, history)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception:
        logger.exception("Chat failed unexpectedly")
        raise HTTPException(status_code=500, detail="Chat failed")
    if req.user_id:
        store.record_turn(req.user_id, "user", req.message)
        store.record_turn(req.user_id, "assistant", result.assistant_message)
    return ChatResponse(**result.model_dump())


@app.post("/api/projects")
def save_project(req: SaveProjectRequest, store: SessionStore = Depends(get_store)):
    if not req.user_id:
        return {"project_id": None, "projects": [], "total": 0}
    project_id = store.record_project(req.user_id, req.artifact, req.name)
    return {"project_id": project_id}


@app.get("/api/projects/{user_id}", response_model=HistoryResponse)
def project_history(user_id: str, limit: int = 10, store: SessionStore = Depends(get_store)):
    projects = store.history(user_id, limit)
    return HistoryResponse(projects=projects, total=len(projects))


@app.get("/api/agent/{user_id}")
def agent_info(user_id: str, store: SessionStore = Depends(get_store)):
    session = store.get(user_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Agent not found")
    return {
        "id": session.user_id,
        "created": session.created_at,
        "website_count": len(session.websites),
        "websites": session.websites,
        "project_count": len(session.projects),
        "recent_turns": store.recent_turns(user_id),
    }


@app.get("/health")
def health(settings: Settings = Depends(get_settings), store: SessionStore = Depends(get_store)):
    return {
        "status": "ok",
        "credentials_configured": settings.credentials_configured(),
        "sessions": len(store),
    }


@app.get("/debug")
def debug_info(settings: Settings = Depends(get_settings)):
    """Return runtime diagnostics helpful for debugging credential problems.

    This endpoint intentionally does not return secret values. It only reports presence
    and the GitHub login when a token is configured.
    """
    info = {
        "DEEPSEEK_API_KEY_set": bool(settings.deepseek_api_key),
        "GITHUB_TOKEN_set": bool(settings.github_token),
        "VERCEL_TOKEN_set": bool(settings.vercel_token),
        "VERCEL_PROJECT_ID_set": bool(settings.vercel_project_id),
        "deployment_strategy": "git" if settings.vercel_project_id else "files",
    }
    if settings.github_token:
        info["github_user"] = GitHubOps(token=settings.github_token).resolve_owner()
    return info


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=_settings.port, log_level="info")
