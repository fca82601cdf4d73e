"""Skill middleware: a matching skill answers before planning or providers."""

from __future__ import annotations

from teller.brain.skills import SkillRegistry
from teller.brain.templates import get_variant
from teller.core.pipeline import NextFn, PipelineContext
from teller.memory.service import MemoryManager


class SkillMiddleware:
    def __init__(self, *, registry: SkillRegistry, memory: MemoryManager) -> None:
        self._registry = registry
        self._memory = memory

    async def __call__(self, ctx: PipelineContext, next: NextFn) -> None:
        skill = self._registry.find_skill(ctx.text)
        if skill is None:
            await next(ctx)
            return

        plan = self._registry.run_skill(skill)
        name = self._memory.preferred_name(ctx.event.user_id, ctx.event.display_name)
        lines = [get_variant(plan.intent, name=name)]
        lines.extend(f"{i}. {step.description}" for i, step in enumerate(plan.steps, start=1))
        if skill.safety_rules:
            lines.append(f"Rule: {skill.safety_rules}")
        ctx.metric("skill_matched", labels=(("skill", skill.name),))
        ctx.respond("\n".join(lines), source="skill")
