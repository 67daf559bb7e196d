"""Deterministic build path: requirement set → playlist with no model in the loop."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from ff1agent.agent.models import RequirementSet
from ff1agent.agent.orchestrator import RunResult
from ff1agent.agent.run import RunContext
from ff1agent.agent.services import Services
from ff1agent.agent.tools.acquisition import acquire
from ff1agent.agent.tools.delivery import PublishPlaylistTool, send_artifact
from ff1agent.agent.tools.playlist import build_artifact, verify_artifact
from ff1agent.errors import AcquisitionError, DeliveryError, SchemaValidationError


async def build_playlist_direct(
    request: RequirementSet,
    services: Services,
    output_path: str | Path | None = None,
) -> RunResult:
    """Acquire every requirement in order, then build, verify, send and publish.

    Feed names must match a playlist title exactly.  Raises
    ``AcquisitionError`` when nothing could be acquired,
    ``SchemaValidationError`` when the result is not valid DP-1 and
    ``DeliveryError`` when a requested device send fails.  A failed publish
    is reported in the result only.
    """
    config = services.config
    settings = request.settings
    run = RunContext(
        settings=settings,
        output_path=Path(output_path or config.agent.output_path),
        private_key=config.playlist.private_key or None,
        rng=services.rng,
    )
    try:
        for i, requirement in enumerate(request.requirements, 1):
            logger.info(f"[{i}/{len(request.requirements)}] {requirement.describe()}")
            await acquire(
                requirement, settings.duration_per_item, run, services, exact_feed=True
            )

        if not run.acquired:
            raise AcquisitionError("No items collected from any requirement")

        built = await build_artifact(run, services, run.acquired_ids)
        if not built["success"]:
            raise AcquisitionError(built["error"])

        check = verify_artifact(run, run.artifact_id)
        if not check["valid"]:
            raise SchemaValidationError(check["error"], check.get("details"))

        if settings.device_requested:
            sent = await send_artifact(run, services, run.artifact_id, settings.device_name)
            if not sent["success"]:
                raise DeliveryError(f"Failed to send playlist to device: {sent.get('error')}")

        publish_result = None
        if settings.feed_server and run.file_path:
            publish_result = await PublishPlaylistTool(services).publish(
                run.file_path, settings.feed_server
            )

        return RunResult(
            status="done",
            playlist=run.artifact,
            artifact_id=run.artifact_id,
            file_path=run.file_path,
            sent_to_device=run.sent_to_device,
            device_name=run.delivered_to,
            published=bool(publish_result and publish_result["success"]),
            publish_result=publish_result,
            failed_requirements=list(run.failed_requirements),
        )
    finally:
        run.close()
