"""Skill registry CLI commands."""

from __future__ import annotations

import typer
from rich.table import Table

from .core import app, console

skills_app = typer.Typer(help="List and add skills")
app.add_typer(skills_app, name="skills")


def _registry():
    from teller.brain.skills import SkillRegistry, SqliteSkillStore, register_builtin_skills
    from teller.config.loader import load_config

    store = SqliteSkillStore(load_config().storage.path)
    registry = SkillRegistry(store)
    register_builtin_skills(registry)
    return store, registry


@skills_app.command("list")
def skills_list() -> None:
    """Show built-in and saved skills in match order."""
    store, registry = _registry()
    store.close()

    table = Table(title="Skills")
    table.add_column("Name", style="cyan")
    table.add_column("Triggers")
    table.add_column("Steps", justify="right")
    for skill in registry.all():
        steps = len(registry.run_skill(skill).steps)
        table.add_row(skill.name, ", ".join(skill.triggers), str(steps))
    console.print(table)


@skills_app.command("add")
def skills_add(
    name: str = typer.Option(..., "--name", "-n", help="Skill name"),
    trigger: list[str] = typer.Option(..., "--trigger", "-t", help="Trigger phrase (repeatable)"),
    step: list[str] = typer.Option(..., "--step", "-s", help="Step text (repeatable)"),
    rule: str = typer.Option("", "--rule", "-r", help="Safety rule shown with the steps"),
) -> None:
    """Save a skill so it survives restarts."""
    store, registry = _registry()
    try:
        steps_md = "\n".join(f"- {s.strip()}" for s in step if s.strip())
        skill = registry.register(name, trigger, steps_md, rule, persist=True)
    finally:
        store.close()
    console.print(f"[green]✓[/green] Saved skill '{skill.name}' with {len(trigger)} trigger(s)")
