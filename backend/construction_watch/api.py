from fastapi import APIRouter, Depends, HTTPException, Query, status

from .orchestrator import (
    ScraperAlreadyRunningError, ScraperOrchestrator, UnknownScraperSourceError, build_default_orchestrator,
)
from .schemas import (
    ScraperRun, ScraperRunRequest, ScraperStatusOut, SuggestionOut, WorkflowActionRequest,
)
from .store import SqlSuggestionStore, SuggestionStore
from .workflow import execute_workflow_action, get_available_actions

_orchestrator: ScraperOrchestrator | None = None


def get_orchestrator() -> ScraperOrchestrator:
    # Built lazily so importing the router doesn't read sources.json
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_default_orchestrator()
    return _orchestrator


def get_store() -> SuggestionStore:
    return SqlSuggestionStore()


router = APIRouter(prefix="/api", tags=["api"])

@router.get("/health")
def health():
    return {"ok": True}

@router.get("/scrapers/status", response_model=ScraperStatusOut)
def scraper_status(orchestrator: ScraperOrchestrator = Depends(get_orchestrator)):
    return orchestrator.get_status()

@router.get("/scrapers/runs", response_model=list[ScraperRun])
def scraper_runs(
    source: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    orchestrator: ScraperOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.get_run_history(source=source, limit=limit)

@router.post("/scrapers/run", response_model=list[ScraperRun])
async def run_scrapers(
    body: ScraperRunRequest,
    orchestrator: ScraperOrchestrator = Depends(get_orchestrator),
):
    """Admin action: run one scraper, or all enabled scrapers when no source is given."""
    process = not body.dry_run
    if body.source is None:
        return await orchestrator.run_all(process=process)
    try:
        return [await orchestrator.run_one(body.source, process=process)]
    except UnknownScraperSourceError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ScraperAlreadyRunningError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

@router.get("/suggestions/{suggestion_id}")
def get_suggestion(suggestion_id: int, store: SuggestionStore = Depends(get_store)):
    suggestion = store.get(suggestion_id)
    if suggestion is None:
        raise HTTPException(status_code=404, detail="Suggestion not found")
    out = SuggestionOut.model_validate(suggestion)
    return {**out.model_dump(mode="json"), "available_actions": get_available_actions(out.status)}

@router.post("/suggestions/{suggestion_id}/actions", response_model=SuggestionOut)
def apply_suggestion_action(
    suggestion_id: int,
    body: WorkflowActionRequest,
    store: SuggestionStore = Depends(get_store),
):
    result = execute_workflow_action(
        store, suggestion_id, body.action, body.role, body.user_id, review_notes=body.review_notes,
    )
    if not result.success:
        raise HTTPException(status_code=result.status_code or 400, detail=result.error)
    return result.suggestion
