import logging

from fastapi import APIRouter, BackgroundTasks, Depends, status

from storyboard.api.deps import get_session
from storyboard.api.models import AnalyzeScriptRequest, BatchAcceptedResponse, SceneListResponse, SceneResponse, UpdatePromptRequest
from storyboard.core.exceptions import JobBusyError
from storyboard.jobs.orchestrator import StoryboardSession

router = APIRouter()
logger = logging.getLogger("storyboard.api.routes.scenes")


async def _run_single(session: StoryboardSession, job_id: int) -> None:
  try:
    await session.orchestrator.generate_one(job_id)
  except JobBusyError:
    logger.info("Scene job %s was claimed by another run before it started.", job_id)


@router.post("/storyboard/analyze", response_model=SceneListResponse)
async def analyze_script(payload: AnalyzeScriptRequest, session: StoryboardSession = Depends(get_session)) -> SceneListResponse:  # noqa: B008
  """Break a script into a new scene set, replacing the current one."""
  jobs = await session.analyze(payload.script)
  return SceneListResponse(scenes=[SceneResponse.from_job(job) for job in jobs])


@router.get("/scenes", response_model=SceneListResponse)
async def list_scenes(session: StoryboardSession = Depends(get_session)) -> SceneListResponse:  # noqa: B008
  return SceneListResponse(scenes=[SceneResponse.from_job(job) for job in session.store.list()])


@router.post("/scenes/generate-all", response_model=BatchAcceptedResponse, status_code=status.HTTP_202_ACCEPTED)
async def generate_all(background_tasks: BackgroundTasks, session: StoryboardSession = Depends(get_session)) -> BatchAcceptedResponse:  # noqa: B008
  """Schedule every scene without an image."""
  job_ids = session.orchestrator.pending_ids()
  background_tasks.add_task(session.orchestrator.generate_all)
  return BatchAcceptedResponse(job_ids=job_ids)


@router.post("/scenes/retry-failed", response_model=BatchAcceptedResponse, status_code=status.HTTP_202_ACCEPTED)
async def retry_failed(background_tasks: BackgroundTasks, session: StoryboardSession = Depends(get_session)) -> BatchAcceptedResponse:  # noqa: B008
  """Re-queue every failed scene."""
  job_ids = session.orchestrator.failed_ids()
  background_tasks.add_task(session.orchestrator.retry_failed)
  return BatchAcceptedResponse(job_ids=job_ids)


@router.post("/scenes/text-overlays", response_model=SceneListResponse)
async def generate_all_text_overlays(session: StoryboardSession = Depends(get_session)) -> SceneListResponse:  # noqa: B008
  jobs = await session.generate_all_text_overlays()
  return SceneListResponse(scenes=[SceneResponse.from_job(job) for job in jobs])


@router.get("/scenes/{job_id}", response_model=SceneResponse)
async def get_scene(job_id: int, session: StoryboardSession = Depends(get_session)) -> SceneResponse:  # noqa: B008
  return SceneResponse.from_job(session.store.get(job_id))


@router.patch("/scenes/{job_id}", response_model=SceneResponse)
async def update_prompt(job_id: int, payload: UpdatePromptRequest, session: StoryboardSession = Depends(get_session)) -> SceneResponse:  # noqa: B008
  return SceneResponse.from_job(session.update_prompt(job_id, payload.prompt))


@router.post("/scenes/{job_id}/refine", response_model=SceneResponse)
async def refine_prompt(job_id: int, session: StoryboardSession = Depends(get_session)) -> SceneResponse:  # noqa: B008
  return SceneResponse.from_job(await session.refine_prompt(job_id))


@router.post("/scenes/{job_id}/generate", response_model=BatchAcceptedResponse, status_code=status.HTTP_202_ACCEPTED)
async def generate_one(job_id: int, background_tasks: BackgroundTasks, session: StoryboardSession = Depends(get_session)) -> BatchAcceptedResponse:  # noqa: B008
  """Regenerate one scene outside the batch scheduler."""
  session.store.get(job_id)
  if session.orchestrator.is_busy(job_id):
    raise JobBusyError(job_id)
  background_tasks.add_task(_run_single, session, job_id)
  return BatchAcceptedResponse(job_ids=[job_id])


@router.post("/scenes/{job_id}/text-overlay", response_model=SceneResponse)
async def generate_text_overlay(job_id: int, session: StoryboardSession = Depends(get_session)) -> SceneResponse:  # noqa: B008
  session.store.get(job_id)
  return SceneResponse.from_job(await session.generate_text_overlay(job_id))
