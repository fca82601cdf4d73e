"""Slash-command middleware.

Commands are matched on the raw text before any intent routing, so
``/confirm`` never reaches a skill or a provider.
"""

from __future__ import annotations

from loguru import logger

from teller.assistant.settings import SqliteAssistantSettings
from teller.core.pipeline import NextFn, PipelineContext
from teller.memory.service import MemoryManager
from teller.pipeline.safety import SafetyActions
from teller.providers.router import TieredProviderRouter

HELP_TEXT = (
    "Commands:\n"
    "/confirm [id] - execute your latest pending transfer\n"
    "/cancel - cancel pending transfers\n"
    "/authorize - start a signing session\n"
    "/verify <address> <signature> - finish the session\n"
    "/ai on|off - toggle model replies\n"
    "/aidiag - last model call details\n"
    "/aitest - ping every provider tier\n"
    "/forget <keyword> - drop facts mentioning a keyword"
)


class CommandMiddleware:
    """Handle ``/``-prefixed commands; anything else passes through."""

    def __init__(
        self,
        *,
        actions: SafetyActions,
        settings: SqliteAssistantSettings,
        memory: MemoryManager,
        router: TieredProviderRouter | None = None,
        ai_enabled_by_default: bool = True,
        ai_daily_limit: int = 50,
    ) -> None:
        self._actions = actions
        self._settings = settings
        self._memory = memory
        self._router = router
        self._ai_default = ai_enabled_by_default
        self._ai_daily_limit = ai_daily_limit

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        if not ctx.text.startswith("/"):
            await next(ctx)
            return

        parts = ctx.text.split()
        command = parts[0][1:].split("@", 1)[0].lower()
        args = parts[1:]
        user_id = ctx.event.user_id
        ctx.metric("command", labels=(("name", command),))
        logger.debug("command /{} user={}", command, user_id)

        match command:
            case "confirm":
                await self._actions.confirm(ctx, args[0] if args else None)
            case "cancel":
                self._actions.cancel(ctx)
            case "authorize":
                self._actions.authorize(ctx)
            case "verify":
                if len(args) != 2:
                    ctx.respond("Usage: /verify <address> <signature>", source="command", verbatim=True)
                    return
                self._actions.verify(ctx, args[0], args[1])
            case "ai":
                self._toggle_ai(ctx, args)
            case "aidiag":
                self._diagnostics(ctx)
            case "aitest":
                await self._test_tiers(ctx)
            case "forget":
                keyword = " ".join(args).strip()
                if not keyword:
                    ctx.respond("Usage: /forget <keyword>", source="command", verbatim=True)
                    return
                count = self._memory.forget(user_id, keyword)
                ctx.respond(f"Forgot {count} fact(s) about '{keyword}'.", source="command", verbatim=True)
            case "help" | "start":
                ctx.respond(HELP_TEXT, source="command", verbatim=True)
            case _:
                ctx.respond(f"Unknown command /{command}. Send /help for the list.", source="command", verbatim=True)

    def _toggle_ai(self, ctx: PipelineContext, args: list[str]) -> None:
        user_id = ctx.event.user_id
        choice = args[0].lower() if args else ""
        if choice in ("on", "off"):
            self._settings.set_enabled(user_id, choice == "on")
            ctx.respond(f"Model replies are now {choice}.", source="command", verbatim=True)
            return
        state = "on" if self._settings.is_enabled(user_id, default=self._ai_default) else "off"
        used = self._settings.usage(user_id)
        ctx.respond(
            f"Model replies are {state}. Used {used}/{self._ai_daily_limit} calls today. Use /ai on or /ai off.",
            source="command",
            verbatim=True,
        )

    def _diagnostics(self, ctx: PipelineContext) -> None:
        diag = self._settings.diagnostics(ctx.event.user_id)
        if diag is None:
            ctx.respond("No model calls recorded yet.", source="command", verbatim=True)
            return
        lines = [
            f"Day: {diag.day} ({diag.calls_today} call(s))",
            f"Last success: {diag.last_success_provider or '-'}",
            f"Last error provider: {diag.last_error_provider or '-'}",
            f"Last status: {diag.last_status if diag.last_status is not None else '-'}",
            f"Last error: {diag.last_error or '-'}",
            f"Last latency: {diag.last_latency_ms if diag.last_latency_ms is not None else '-'} ms",
        ]
        ctx.respond("\n".join(lines), source="command", verbatim=True)

    async def _test_tiers(self, ctx: PipelineContext) -> None:
        if self._router is None:
            ctx.respond("No provider tiers are configured.", source="command", verbatim=True)
            return
        results = await self._router.test_all_tiers()
        lines = [
            f"{'ok ' if r.ok else 'ERR'} {r.provider} ({r.model}) status={r.status} {r.latency_ms}ms"
            + (f" {r.error}" if r.error else "")
            for r in results
        ]
        ctx.respond("\n".join(lines), source="command", verbatim=True)
