from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from reel_captioner.render.archive import ArchivePackager
from reel_captioner.render.batch import BatchRegistry
from reel_captioner.render.job_runner import RenderJobRunner, log_render_event
from reel_captioner.render.orchestrator import BatchOrchestrator
from reel_captioner.services.storage_service import LocalStorageService


@lru_cache
def get_storage_service() -> LocalStorageService:
    return LocalStorageService()


@lru_cache
def get_batch_registry() -> BatchRegistry:
    return BatchRegistry()


def get_orchestrator(
    storage: Annotated[LocalStorageService, Depends(get_storage_service)],
    registry: Annotated[BatchRegistry, Depends(get_batch_registry)],
) -> BatchOrchestrator:
    return BatchOrchestrator(
        storage=storage,
        runner=RenderJobRunner(listener=log_render_event),
        registry=registry,
    )


def get_archive_packager(
    storage: Annotated[LocalStorageService, Depends(get_storage_service)],
    registry: Annotated[BatchRegistry, Depends(get_batch_registry)],
) -> ArchivePackager:
    return ArchivePackager(storage=storage, registry=registry)


Storage = Annotated[LocalStorageService, Depends(get_storage_service)]
Registry = Annotated[BatchRegistry, Depends(get_batch_registry)]
Orchestrator = Annotated[BatchOrchestrator, Depends(get_orchestrator)]
Packager = Annotated[ArchivePackager, Depends(get_archive_packager)]
