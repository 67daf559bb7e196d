"""Orchestrator: drives an accepted requirement set to a verified playlist.

The model chooses which operations to call; the orchestrator owns the
state machine around it::

    RUN → (CALL → AWAIT_RESULT)* → DONE | FAILED | NEEDS_CONFIRMATION

Verification, the device send and the publish step are completed
deterministically when the model stops short of them.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from loguru import logger

from ff1agent.agent.models import RequirementSet
from ff1agent.agent.prompts import (
    build_kickoff_message,
    build_orchestrator_prompt,
    build_repair_prompt,
    build_stall_directive,
)
from ff1agent.agent.run import RunContext
from ff1agent.agent.services import Services
from ff1agent.agent.session import Session
from ff1agent.agent.tools.acquisition import (
    FetchFeedPlaylistItemsTool,
    QueryRequirementTool,
    ResolveDomainsTool,
    SearchFeedPlaylistTool,
)
from ff1agent.agent.tools.delivery import PublishPlaylistTool, SendToDeviceTool, send_artifact
from ff1agent.agent.tools.playlist import (
    BuildPlaylistTool,
    VerifyPlaylistTool,
    build_artifact,
    verify_artifact,
)
from ff1agent.agent.tools.registry import ToolRegistry
from ff1agent.config.schema import Config
from ff1agent.errors import FF1Error
from ff1agent.providers.base import LLMProvider, ToolCallRequest

RunStatus = Literal["done", "failed", "needs_confirmation"]

NO_ITEMS_MESSAGE = (
    "Failed to build playlist - No items found or AI did not complete the task. "
    "Check if the requirements match any available data."
)

_CONFIRM_ACTIONS = ("proceed", "build", "cancel")
_DIRECT_BUILD_REASONS = ("MALFORMED_FUNCTION_CALL", "filter")


@dataclass
class RunResult:
    """Outcome of one orchestrator entry (run or resume)."""

    status: RunStatus
    playlist: dict[str, Any] | None = None
    artifact_id: str | None = None
    file_path: str | None = None
    sent_to_device: bool = False
    device_name: str | None = None
    published: bool = False
    publish_result: dict[str, Any] | None = None
    error: str | None = None
    details: list[dict[str, Any]] = field(default_factory=list)
    message: str | None = None
    question: str | None = None
    failed_requirements: list[dict[str, Any]] = field(default_factory=list)
    turns: int = 0

    @property
    def ok(self) -> bool:
        return self.status == "done"


def is_confirmation_request(content: str) -> bool:
    lowered = content.lower()
    return "would you like" in lowered and any(a in lowered for a in _CONFIRM_ACTIONS)


def _finish_reason_forces_build(reason: str | None) -> bool:
    return bool(reason) and any(r in reason for r in _DIRECT_BUILD_REASONS)


class Orchestrator:
    """Runs the build conversation for one requirement set at a time."""

    def __init__(
        self,
        provider: LLMProvider,
        config: Config,
        services: Services | None = None,
        model_name: str | None = None,
        output_path: str | Path | None = None,
    ):
        self.provider = provider
        self.config = config
        self.services = services or Services.from_config(config)
        model_cfg = config.get_model(model_name)
        self.model = (model_cfg.model if model_cfg else None) or provider.get_default_model()
        self.temperature = model_cfg.temperature if model_cfg else 0.3
        self.max_tokens = model_cfg.max_tokens if model_cfg else 4000
        self.max_iterations = config.agent.max_iterations
        self.max_verification_retries = config.agent.max_verification_retries
        self.output_path = Path(output_path or config.agent.output_path)

        self.run_ctx: RunContext | None = None
        self.session: Session | None = None
        self.tools: ToolRegistry | None = None
        self.interactive = False
        self.suspended = False

    # Entry points

    async def run(self, request: RequirementSet, interactive: bool = False) -> RunResult:
        self.interactive = interactive
        self.run_ctx = RunContext(
            settings=request.settings,
            output_path=self.output_path,
            private_key=self.config.playlist.private_key or None,
            rng=self.services.rng,
        )
        self.tools = self._build_tools(request)
        self.session = Session(max_turns=self.max_iterations)
        self.session.add_system(build_orchestrator_prompt(request, interactive))
        self.session.add_user(build_kickoff_message(request))
        logger.info(f"Orchestrating {len(request.requirements)} requirement(s)")
        return await self._drive()

    async def resume(self, reply: str) -> RunResult:
        """Continue a run suspended with ``needs_confirmation``."""
        if not self.suspended:
            raise FF1Error("No suspended run to resume")
        self.session.add_user(reply)
        return await self._drive()

    def _build_tools(self, request: RequirementSet) -> ToolRegistry:
        run, services = self.run_ctx, self.services
        tools = ToolRegistry()
        tools.register(QueryRequirementTool(run, services))
        tools.register(SearchFeedPlaylistTool(run, services))
        tools.register(FetchFeedPlaylistItemsTool(run, services))
        tools.register(ResolveDomainsTool(services))
        tools.register(BuildPlaylistTool(run, services))
        tools.register(VerifyPlaylistTool(run))
        if request.settings.device_requested:
            tools.register(SendToDeviceTool(run, services))
        return tools

    # Main loop

    def cancel(self) -> None:
        """Abandon the current run and clear its registry."""
        if self.run_ctx is not None:
            self.run_ctx.close()
        self.suspended = False

    async def _drive(self) -> RunResult:
        self.session.start_entry()
        try:
            result = await self._advance()
        except BaseException:
            logger.error("Run aborted by an exception; clearing run state")
            self.cancel()
            raise
        self.suspended = result.status == "needs_confirmation"
        return result

    async def _advance(self) -> RunResult:
        session, run = self.session, self.run_ctx
        while True:
            outcome = await self._converse()
            if isinstance(outcome, RunResult):
                return outcome

            if run.artifact_id is None:
                return self._fail(outcome or NO_ITEMS_MESSAGE)

            if not run.verified:
                check = verify_artifact(run, run.artifact_id)
                if not check["valid"]:
                    if run.verification_failures >= self.max_verification_retries:
                        return self._verification_failed()
                    if session.exhausted:
                        return self._fail(
                            f"Playlist failed validation: {check['error']}",
                            details=check.get("details", []),
                        )
                    session.add_user(build_repair_prompt(check["error"], check.get("details", [])))
                    continue

            return await self._complete()

    async def _converse(self) -> RunResult | str | None:
        """Run model turns until it stops.

        Returns a terminal ``RunResult``, or the model's closing text (``None``
        when there is none) for the deterministic completion step.
        """
        session, run = self.session, self.run_ctx
        content: str | None = None

        while not session.exhausted:
            turn = session.next_turn()
            response = await self.provider.chat(
                messages=session.messages,
                tools=self.tools.get_definitions(),
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )

            if _finish_reason_forces_build(response.finish_reason):
                logger.warning(
                    f"Model stopped with finish_reason={response.finish_reason}; building directly"
                )
                if run.artifact_id is None and run.acquired:
                    await build_artifact(run, self.services, run.acquired_ids)
                return response.content

            if response.has_tool_calls:
                session.add_response(response)
                await self._execute_calls(response.tool_calls)
                if run.verification_failures >= self.max_verification_retries:
                    return self._verification_failed()
                self._maybe_repair(response.tool_calls)
                continue

            content = (response.content or "").strip()
            session.add_response(response)

            if self.interactive and is_confirmation_request(content):
                logger.info("Run suspended for user confirmation")
                return RunResult(
                    status="needs_confirmation",
                    question=content,
                    failed_requirements=list(run.failed_requirements),
                    turns=session.total_turns,
                )

            if run.artifact_id is None and run.acquired and turn < self.max_iterations - 1:
                logger.info(f"Model stalled with {len(run.acquired)} item(s); directing it to build")
                session.add_system(build_stall_directive(len(run.acquired)))
                continue
            return content or None

        logger.warning(f"Turn limit ({self.max_iterations}) reached")
        return content

    async def _execute_calls(self, calls: list[ToolCallRequest]) -> None:
        """Run one turn's calls concurrently and append results in call order."""
        for tc in calls:
            logger.info(f"Tool call: {tc.name}({str(tc.arguments)[:200]})")
        results = await asyncio.gather(*(self.tools.execute(tc.name, tc.arguments) for tc in calls))
        for tc, result in zip(calls, results):
            self.session.add_tool_result(tc.id, tc.name, result)

    def _maybe_repair(self, calls: list[ToolCallRequest]) -> None:
        if not any(tc.name == "verify_playlist" for tc in calls):
            return
        last = self.run_ctx.last_verification
        if last and not last.get("valid") and not self.run_ctx.verified:
            self.session.add_user(build_repair_prompt(last["error"], last.get("details", [])))

    # Completion

    async def _complete(self) -> RunResult:
        run, settings = self.run_ctx, self.run_ctx.settings
        playlist = run.artifact

        if settings.device_requested and not run.sent_to_device:
            sent = await send_artifact(run, self.services, run.artifact_id, settings.device_name)
            if not sent["success"]:
                return self._fail(
                    f"Failed to send playlist to device: {sent.get('error')}", keep_playlist=True
                )

        publish_result = None
        if settings.feed_server:
            if run.file_path:
                publish_result = await PublishPlaylistTool(self.services).publish(
                    run.file_path, settings.feed_server
                )
            else:
                publish_result = {"success": False, "error": "Playlist file was not saved"}

        result = RunResult(
            status="done",
            playlist=playlist,
            artifact_id=run.artifact_id,
            file_path=run.file_path,
            sent_to_device=run.sent_to_device,
            device_name=run.delivered_to,
            published=bool(publish_result and publish_result["success"]),
            publish_result=publish_result,
            failed_requirements=list(run.failed_requirements),
            turns=self.session.total_turns,
        )
        logger.info(f"Run done: {len(playlist['items'])} item(s) in {result.turns} turn(s)")
        run.close()
        return result

    def _verification_failed(self) -> RunResult:
        last = self.run_ctx.last_verification or {}
        # Several verify calls in one turn can overshoot the limit
        attempts = min(self.run_ctx.verification_failures, self.max_verification_retries)
        return self._fail(
            f"Playlist failed DP-1 validation after {attempts} attempts: "
            f"{last.get('error', 'unknown error')}",
            details=list(last.get("details", [])),
        )

    def _fail(
        self,
        error: str,
        details: list[dict[str, Any]] | None = None,
        keep_playlist: bool = False,
    ) -> RunResult:
        run = self.run_ctx
        logger.error(f"Run failed: {error}")
        result = RunResult(
            status="failed",
            playlist=run.artifact if keep_playlist else None,
            artifact_id=run.artifact_id,
            file_path=run.file_path,
            error=error,
            details=details or [],
            failed_requirements=list(run.failed_requirements),
            turns=self.session.total_turns,
        )
        run.close()
        return result
