import typer
import yaml
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from spoilr.config.loader import ConfigFile, YamlPresetStore, YamlSettingsStore, default_config_path
from spoilr.domain.errors import SpoilrError
from spoilr.infrastructure.event_bus import EventBus
from spoilr.infrastructure.ffprobe import FFprobeMediaProbe
from spoilr.infrastructure.file_scanner import FileScanner
from spoilr.infrastructure.logging import setup_logging
from spoilr.infrastructure.screenshots import MtnScreenshotGenerator
from spoilr.infrastructure.uploaders import load_uploaders
from spoilr.pipeline.context import AppContext
from spoilr.pipeline.orchestrator import Orchestrator
from spoilr.ui.status_table import StatusView

app = typer.Typer(help="spoilr - video spoiler generator (metadata, screenshots, image hosts, templates)")
template_app = typer.Typer(help="Show or edit the current template")
presets_app = typer.Typer(help="Manage template presets")
settings_app = typer.Typer(help="Show or change settings")
app.add_typer(template_app, name="template")
app.add_typer(presets_app, name="presets")
app.add_typer(settings_app, name="settings")

CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Path to spoilr.config (YAML)")

console = Console()


def fail(message: str) -> None:
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def build_context(config_path: Optional[Path]) -> Tuple[AppContext, Path]:
    path = config_path or default_config_path()
    config_file = ConfigFile(path)
    context = AppContext(YamlSettingsStore(config_file), YamlPresetStore(config_file))
    return context, path


def parse_assignments(assignments: List[str]) -> dict:
    """KEY=VALUE pairs; values are parsed as YAML scalars so numbers and lists keep their type."""
    changes = {}
    for item in assignments:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Expected KEY=VALUE, got {item!r}")
        parsed = yaml.safe_load(value) if value.strip() else ""
        changes[key.strip()] = "" if parsed is None else parsed
    return changes


@app.command()
def process(
    paths: List[Path] = typer.Argument(..., help="Video files or directories to process"),
    config_path: Optional[Path] = CONFIG_OPTION,
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the rendered result to this file"),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Path to log file"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
):
    """Analyze, screenshot and upload videos, then print the rendered spoilers."""
    try:
        context, resolved_config = build_context(config_path)
        logger = setup_logging(resolved_config.parent, debug=debug, log_path=log_path)
        settings = context.settings
        logger.info(
            f"spoilr started: paths={len(paths)}, screenshots={settings.screenshot_count}, "
            f"screenshot_slots={settings.max_concurrent_screenshots}, upload_slots={settings.max_concurrent_uploads}"
        )

        bus = EventBus()
        uploaders = load_uploaders()
        if not uploaders:
            logger.warning("No uploaders registered; images will only be generated")
        orchestrator = Orchestrator(
            context=context,
            event_bus=bus,
            media_probe=FFprobeMediaProbe(timeout_s=settings.tool_timeout_s),
            screenshot_generator=MtnScreenshotGenerator(),
            uploaders=uploaders,
            file_scanner=FileScanner(settings.video_extensions),
        )

        added = orchestrator.add_movies(paths)
        if not added:
            fail("No video files found in the given paths.")

        view = StatusView(orchestrator.state_publisher, orchestrator.error_publisher, console=console)
        try:
            with view:
                orchestrator.start_processing()
                while not orchestrator.wait(timeout=0.5):
                    pass
        except KeyboardInterrupt:
            orchestrator.cancel_processing()
            orchestrator.wait()
            typer.secho("\nProcessing cancelled by user (Ctrl+C)", fg=typer.colors.YELLOW)
            raise typer.Exit(code=130)

        result = orchestrator.generate_result()
        if output:
            output.write_text(result, encoding="utf-8")
            typer.secho(f"Result written to {output}", fg=typer.colors.GREEN)
        elif result:
            typer.echo(result)
        else:
            typer.secho("No movies completed.", fg=typer.colors.YELLOW)

        failed = [m for m in orchestrator.get_state().movies if m.processing_error]
        if failed:
            raise typer.Exit(code=1)

    except typer.Exit:
        raise

    except SpoilrError as e:
        fail(str(e))

    except Exception as e:
        typer.secho(f"Fatal Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


# ── template ──────────────────────────────────────────────────────────────────

@template_app.command("show")
def template_show(config_path: Optional[Path] = CONFIG_OPTION):
    """Print the current template."""
    context, _ = build_context(config_path)
    typer.echo(context.presets.current_template())


@template_app.command("default")
def template_default(config_path: Optional[Path] = CONFIG_OPTION):
    """Print the built-in default template."""
    context, _ = build_context(config_path)
    typer.echo(context.presets.default_template())


@template_app.command("set")
def template_set(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File with the new template text"),
    config_path: Optional[Path] = CONFIG_OPTION,
):
    """Replace the current preset's template."""
    context, _ = build_context(config_path)
    preset = context.presets.set_template(file.read_text(encoding="utf-8"))
    typer.secho(f"Template updated for preset {preset.name} ({preset.id})", fg=typer.colors.GREEN)


# ── presets ───────────────────────────────────────────────────────────────────

@presets_app.command("list")
def presets_list(config_path: Optional[Path] = CONFIG_OPTION):
    context, _ = build_context(config_path)
    current = context.presets.current_id()
    table = Table(title="Template presets")
    table.add_column("", width=1)
    table.add_column("ID")
    table.add_column("Name")
    for preset in context.presets.list_presets():
        table.add_row("*" if preset.id == current else "", preset.id, preset.name)
    console.print(table)


@presets_app.command("save")
def presets_save(
    name: str = typer.Argument(..., help="Preset name"),
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File with the template text"),
    config_path: Optional[Path] = CONFIG_OPTION,
):
    """Save a new preset from a template file."""
    context, _ = build_context(config_path)
    try:
        preset = context.presets.save(name, file.read_text(encoding="utf-8"))
    except ValueError as e:
        fail(str(e))
    typer.secho(f"Saved preset {preset.name} ({preset.id})", fg=typer.colors.GREEN)


@presets_app.command("use")
def presets_use(preset_id: str, config_path: Optional[Path] = CONFIG_OPTION):
    """Make a preset current."""
    context, _ = build_context(config_path)
    try:
        context.presets.set_current(preset_id)
    except SpoilrError as e:
        fail(str(e))
    typer.secho(f"Current preset: {preset_id}", fg=typer.colors.GREEN)


@presets_app.command("delete")
def presets_delete(preset_id: str, config_path: Optional[Path] = CONFIG_OPTION):
    context, _ = build_context(config_path)
    try:
        context.presets.delete(preset_id)
    except SpoilrError as e:
        fail(str(e))
    typer.secho(f"Deleted preset {preset_id}", fg=typer.colors.GREEN)


# ── settings ──────────────────────────────────────────────────────────────────

@settings_app.command("show")
def settings_show(config_path: Optional[Path] = CONFIG_OPTION):
    context, path = build_context(config_path)
    table = Table(title=f"Settings ({path})")
    table.add_column("Key")
    table.add_column("Value")
    for key, value in context.settings.model_dump().items():
        if key == "hamster_password" and value:
            value = "********"
        table.add_row(key, str(value))
    console.print(table)


@settings_app.command("set")
def settings_set(
    assignments: List[str] = typer.Argument(..., help="KEY=VALUE pairs"),
    config_path: Optional[Path] = CONFIG_OPTION,
):
    """Validate and save setting changes."""
    context, _ = build_context(config_path)
    try:
        changes = parse_assignments(assignments)
        context.update_settings(changes)
    except ValidationError as e:
        fail("; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()))
    except ValueError as e:
        fail(str(e))
    typer.secho(f"Updated: {', '.join(sorted(changes))}", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app()
