"""CLI commands for ff1agent."""

import asyncio
import json
import sys
from contextlib import nullcontext
from pathlib import Path
from typing import Any, Awaitable, Callable

import typer
from loguru import logger
from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import FileHistory
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console
from rich.table import Table

from ff1agent import __logo__, __version__
from ff1agent.errors import FF1Error

app = typer.Typer(
    name="ff1",
    help=f"{__logo__} ff1 - build DP-1 playlists from plain language and play them on FF1",
    no_args_is_help=True,
)

console = Console()
EXIT_COMMANDS = {"exit", "quit", "/exit", "/quit", ":q"}
DECLINE_REPLIES = {"", "n", "no", "cancel", "stop"}

# ---------------------------------------------------------------------------
# Input and output helpers
# ---------------------------------------------------------------------------

_PROMPT_SESSION: PromptSession | None = None


def _init_prompt_session() -> None:
    """Create the prompt_toolkit session with persistent file history."""
    global _PROMPT_SESSION
    from ff1agent.settings import get_settings

    history_file = get_settings().history_file
    history_file.parent.mkdir(parents=True, exist_ok=True)
    _PROMPT_SESSION = PromptSession(
        history=FileHistory(str(history_file)),
        enable_open_in_editor=False,
        multiline=False,
    )


async def _read_input(label: str = "You") -> str:
    if _PROMPT_SESSION is None:
        _init_prompt_session()
    try:
        with patch_stdout():
            return await _PROMPT_SESSION.prompt_async(HTML(f"<b fg='ansiblue'>{label}:</b> "))
    except EOFError as exc:
        raise KeyboardInterrupt from exc


def _is_exit_command(command: str) -> bool:
    return command.lower() in EXIT_COMMANDS


def _configure_logging(verbose: bool) -> None:
    """The package logger stays silent unless --verbose is given."""
    if not verbose:
        logger.disable("ff1agent")
        return
    from ff1agent.settings import get_settings

    logger.remove()
    logger.add(sys.stderr, level=get_settings().log_level.upper())
    logger.enable("ff1agent")


def _fail(message: str, hint: str | None = None) -> None:
    console.print(f"[red]Error: {message}[/red]")
    if hint:
        console.print(f"[dim]{hint}[/dim]")
    raise typer.Exit(1)


def _run(coro: Awaitable[Any]) -> Any:
    """Run a coroutine, turning engine errors into a red message and exit code 1."""
    try:
        return asyncio.run(coro)
    except FF1Error as e:
        _fail(str(e))


def _read_playlist(path: Path) -> dict[str, Any]:
    if not path.exists():
        _fail(f"Playlist file not found: {path}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        _fail(f"Invalid JSON in {path}: {e}")


def _print_details(details: list[dict[str, Any]]) -> None:
    for d in details:
        console.print(f"  [dim]•[/dim] {d.get('path', '(root)')}: {d.get('message', '')}")


def _make_provider(config, model_name: str | None):
    """Create a LiteLLMProvider for the chosen model. Exits when the config cannot work."""
    from ff1agent.config.loader import validate_config
    from ff1agent.providers.litellm_provider import LiteLLMProvider

    problems = validate_config(config, model_name)
    if problems:
        for p in problems:
            console.print(f"[red]✗[/red] {p}")
        console.print("Run [cyan]ff1 config init[/cyan] and add an API key to the config file.")
        raise typer.Exit(1)
    try:
        return LiteLLMProvider.from_model_config(config.get_model(model_name))
    except FF1Error as e:
        _fail(str(e), "Set a model id under models in the config file.")


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} ff1 v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """ff1 - natural-language DP-1 playlists for FF1 devices."""
    pass


# ============================================================================
# Result rendering
# ============================================================================


def _print_requirements(request) -> None:
    from ff1agent.agent.prompts import describe_requirements

    settings = request.settings
    console.print(f"\n[cyan]{__logo__} Building[/cyan]")
    console.print(describe_requirements(request))
    order = "keep order" if settings.preserve_order else "shuffle"
    line = f"[dim]{settings.duration_per_item}s per item, {order}"
    if settings.device_requested:
        line += f", send to device: {settings.device_name or 'first device'}"
    if settings.feed_server:
        line += f", publish to: {settings.feed_server.base_url}"
    console.print(line + "[/dim]\n")


def _print_result(result) -> None:
    for failed in result.failed_requirements:
        console.print(f"[yellow]⚠ {failed['requirement']}: {failed['error']}[/yellow]")

    if not result.ok:
        console.print(f"[red]✗ {result.error}[/red]")
        _print_details(result.details)
        return

    playlist = result.playlist or {}
    console.print(
        f"[green]✓[/green] Playlist ready: {playlist.get('title')} "
        f"({len(playlist.get('items', []))} items)"
    )
    if result.file_path:
        console.print(f"  [dim]Saved to {result.file_path}[/dim]")
    if result.sent_to_device:
        console.print(f"[green]✓[/green] Sent to device: {result.device_name}")
    if result.publish_result:
        _print_publish(result.publish_result)


def _print_publish(publish: dict[str, Any]) -> None:
    if publish.get("success"):
        console.print("[green]✓[/green] Published to feed server")
        if publish.get("playlistId"):
            console.print(f"  [dim]Playlist ID: {publish['playlistId']}[/dim]")
        if publish.get("feedServer"):
            console.print(f"  [dim]Server: {publish['feedServer']}[/dim]")
    else:
        console.print(f"[red]✗ Publish failed: {publish.get('error')}[/red]")
        if publish.get("message"):
            console.print(f"[dim]{publish['message']}[/dim]")


# ============================================================================
# Chat
# ============================================================================


async def _handle_request(
    text: str,
    resolver,
    orchestrator,
    services,
    interactive: bool,
    ask: Callable[[str], Awaitable[str]],
    thinking: Callable[[], Any],
) -> None:
    """Resolve one request and carry it through build, send or publish."""
    from ff1agent.agent.tools.delivery import PublishPlaylistTool

    with thinking():
        intent = await resolver.resolve(text)
    while intent.needs_clarification:
        console.print(f"\n[cyan]{__logo__}[/cyan] {intent.question}")
        reply = (await ask("You")).strip()
        if not reply or _is_exit_command(reply):
            console.print("[dim]Cancelled.[/dim]")
            return
        with thinking():
            intent = await resolver.resolve(reply)

    if intent.status == "requirements":
        _print_requirements(intent.payload)
        with thinking():
            result = await orchestrator.run(intent.payload, interactive=interactive)
        while result.status == "needs_confirmation":
            console.print(f"\n[cyan]{__logo__}[/cyan] {result.question}")
            reply = (await ask("You")).strip()
            if reply.lower() in DECLINE_REPLIES:
                orchestrator.cancel()
                console.print("[dim]Cancelled.[/dim]")
                return
            with thinking():
                result = await orchestrator.resume(reply)
        _print_result(result)

    elif intent.status == "send":
        confirmation = intent.payload
        with thinking():
            sent = await services.device.send(confirmation.playlist, confirmation.device_name)
        if sent["success"]:
            console.print(f"[green]✓[/green] Sent {confirmation.file_path} to {sent['deviceName']}")
        else:
            console.print(f"[red]✗ Failed to send playlist: {sent.get('error')}[/red]")

    elif intent.status == "publish":
        confirmation = intent.payload
        with thinking():
            published = await PublishPlaylistTool(services).publish(
                confirmation.file_path, confirmation.feed_server
            )
        _print_publish(published)


@app.command()
def chat(
    request: str = typer.Argument(None, help="What to build, e.g. '3 artworks from reas.eth'"),
    model: str = typer.Option(None, "--model", "-m", help="Model name from config"),
    output: Path = typer.Option(None, "--output", "-o", help="Where to write the playlist"),
    non_interactive: bool = typer.Option(
        False, "--non-interactive", help="Never ask questions; fail instead"
    ),
    verbose: bool = typer.Option(False, "--verbose", "--logs", help="Show runtime logs"),
):
    """Build a playlist from a natural-language request."""
    from ff1agent.agent import IntentResolver, Orchestrator, Services
    from ff1agent.config.loader import load_config

    _configure_logging(verbose)
    config = load_config()
    provider = _make_provider(config, model)
    interactive = not non_interactive
    if not request and not interactive:
        _fail("A request is required with --non-interactive")

    services = Services.from_config(config)
    resolver = IntentResolver(provider, config, model_name=model, interactive=interactive)
    orchestrator = Orchestrator(
        provider, config, services=services, model_name=model, output_path=output
    )

    def thinking():
        if verbose:
            return nullcontext()
        return console.status("[dim]Working...[/dim]", spinner="dots")

    async def run_once(text: str) -> None:
        await _handle_request(
            text, resolver, orchestrator, services, interactive, _read_input, thinking
        )

    if request:
        _run(run_once(request))
        return

    console.print(f"{__logo__} Interactive mode (type [bold]exit[/bold] or [bold]Ctrl+C[/bold] to quit)\n")

    async def run_interactive() -> None:
        while True:
            try:
                text = (await _read_input()).strip()
            except KeyboardInterrupt:
                console.print("\nGoodbye!")
                return
            if not text:
                continue
            if _is_exit_command(text):
                console.print("\nGoodbye!")
                return
            try:
                await run_once(text)
            except KeyboardInterrupt:
                console.print("\nGoodbye!")
                return
            except FF1Error as e:
                console.print(f"[red]Error: {e}[/red]")
            resolver.reset()

    asyncio.run(run_interactive())


# ============================================================================
# Deterministic commands
# ============================================================================


@app.command()
def build(
    params_file: Path = typer.Argument(..., help="JSON file with requirements and playlistSettings"),
    output: Path = typer.Option(None, "--output", "-o", help="Where to write the playlist"),
    verbose: bool = typer.Option(False, "--verbose", help="Show runtime logs"),
):
    """Build a playlist from a parameters file without a model."""
    from ff1agent.agent import Services, build_playlist_direct
    from ff1agent.agent.tools.terminal import ParseRequirementsTool
    from ff1agent.config.loader import load_config

    _configure_logging(verbose)
    config = load_config()
    params = _read_playlist(params_file)
    if not isinstance(params, dict):
        _fail(f"{params_file} must contain a JSON object")

    tool = ParseRequirementsTool(config)
    problems = tool.validate_params(params)
    if problems:
        _fail(f"Invalid parameters in {params_file}: " + "; ".join(problems))

    async def run() -> None:
        request = tool.accept(**params)
        _print_requirements(request)
        result = await build_playlist_direct(request, Services.from_config(config), output)
        _print_result(result)

    _run(run())


@app.command()
def validate(
    file: Path = typer.Argument(Path("playlist.json"), help="Playlist file"),
):
    """Check a playlist file against the DP-1 schema."""
    from ff1agent.collaborators.verifier import verify_playlist_file

    result = verify_playlist_file(file)
    if result["valid"]:
        console.print(f"[green]✓[/green] {file} is valid DP-1 ({result['itemCount']} items)")
        return
    console.print(f"[red]✗ {result['error']}[/red]")
    _print_details(result.get("details", []))
    raise typer.Exit(1)


@app.command()
def verify(
    file: Path = typer.Argument(Path("playlist.json"), help="Playlist file"),
    public_key: str = typer.Option(None, "--public-key", help="Ed25519 public key (hex or base64)"),
):
    """Validate a playlist file and optionally check its signature."""
    from ff1agent.collaborators.signer import verify_signature

    validate(file)
    if not public_key:
        return
    playlist = _read_playlist(file)
    try:
        ok = verify_signature(playlist, public_key)
    except ValueError as e:
        _fail(str(e))
    if not ok:
        _fail("Signature does not match this playlist")
    console.print("[green]✓[/green] Signature verified")


@app.command()
def sign(
    file: Path = typer.Argument(Path("playlist.json"), help="Playlist file"),
    key: str = typer.Option(None, "--key", "-k", help="Ed25519 private key (base64 or 0x-hex)"),
    output: Path = typer.Option(None, "--output", "-o", help="Write the signed playlist here"),
):
    """Sign a playlist file with Ed25519."""
    from ff1agent.collaborators.signer import sign_playlist
    from ff1agent.config.loader import load_config
    from ff1agent.utils.atomic_io import get_atomic_writer

    private_key = key or load_config().playlist.private_key
    if not private_key:
        _fail("No signing key", "Pass --key or set playlist.privateKey / FF1_PLAYLIST_PRIVATE_KEY")

    playlist = _read_playlist(file)
    try:
        playlist["signature"] = sign_playlist(playlist, private_key)
    except ValueError as e:
        _fail(f"Failed to sign playlist: {e}")

    target = output or file
    try:
        asyncio.run(get_atomic_writer().write_json(target, playlist))
    except OSError as e:
        _fail(f"Could not write {target}: {e}")
    console.print(f"[green]✓[/green] Signed playlist written to {target}")


@app.command()
def send(
    file: Path = typer.Argument(Path("playlist.json"), help="Playlist file"),
    device: str = typer.Option(None, "--device", "-d", help="Device name (default: first device)"),
):
    """Send a playlist file to an FF1 device."""
    from ff1agent.collaborators.device import DeviceClient
    from ff1agent.collaborators.verifier import verify_playlist_file
    from ff1agent.config.loader import load_config

    checked = verify_playlist_file(file)
    if not checked["valid"]:
        console.print(f"[red]✗ {checked['error']}[/red]")
        _print_details(checked.get("details", []))
        raise typer.Exit(1)

    client = DeviceClient(load_config().ff1_devices.devices)
    with console.status("[dim]Sending...[/dim]", spinner="dots"):
        result = asyncio.run(client.send(checked["playlist"], device))
    if not result["success"]:
        _fail(f"Failed to send playlist: {result.get('error')}")
    console.print(f"[green]✓[/green] Sent to {result['deviceName']}")


@app.command()
def publish(
    file: Path = typer.Argument(Path("playlist.json"), help="Playlist file"),
    server: str = typer.Option(
        None, "--server", "-s", help="Feed server URL or its number in `ff1 status`"
    ),
):
    """Publish a playlist file to a feed server."""
    from ff1agent.agent.models import FeedServer
    from ff1agent.agent.services import Services
    from ff1agent.agent.tools.delivery import PublishPlaylistTool
    from ff1agent.config.loader import load_config

    config = load_config()
    servers = config.feed.all_servers()
    if server and server.isdigit():
        index = int(server) - 1
        if not 0 <= index < len(servers):
            _fail(f"No feed server #{server}; {len(servers)} configured")
        base_url, api_key = servers[index].base_url, servers[index].api_key
    elif server:
        match = next((s for s in servers if s.base_url.rstrip("/") == server.rstrip("/")), None)
        base_url, api_key = server, (match.api_key if match else "")
    elif servers:
        base_url, api_key = servers[0].base_url, servers[0].api_key
    else:
        _fail("No feed servers configured")

    with console.status("[dim]Publishing...[/dim]", spinner="dots"):
        tool = PublishPlaylistTool(Services.from_config(config))
        result = asyncio.run(tool.publish(file, FeedServer(base_url, api_key or None)))
    _print_publish(result)
    if not result["success"]:
        raise typer.Exit(1)


# ============================================================================
# Config
# ============================================================================


config_app = typer.Typer(help="Manage configuration")
app.add_typer(config_app, name="config")


@config_app.command("init")
def config_init(
    path: Path = typer.Option(None, "--path", help="Config file to create"),
):
    """Write a starter config file."""
    from ff1agent.config.loader import create_sample_config, get_config_path

    target = path or get_config_path()
    if target.exists() and not typer.confirm(f"{target} exists. Overwrite?"):
        raise typer.Exit()
    created = create_sample_config(target)
    console.print(f"[green]✓[/green] Created config at {created}")
    console.print("\nNext steps:")
    console.print("  1. Add an API key for your model (or set FF1_GROK_API_KEY)")
    console.print("  2. Set your FF1 device host under [cyan]ff1Devices[/cyan]")
    console.print('  3. Try: [cyan]ff1 chat "3 artworks from reas.eth"[/cyan]')


def _mask(data: Any) -> Any:
    if isinstance(data, dict):
        return {
            k: ("***" if v and ("apiKey" in k or "privateKey" in k) else _mask(v))
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [_mask(v) for v in data]
    return data


@config_app.command("show")
def config_show():
    """Print the effective configuration (secrets masked)."""
    from ff1agent.config.loader import convert_to_camel, find_config_path, load_config

    config = load_config()
    console.print(f"[dim]{find_config_path()}[/dim]")
    console.print_json(json.dumps(_mask(convert_to_camel(config.model_dump()))))


@config_app.command("validate")
def config_validate(
    model: str = typer.Option(None, "--model", "-m", help="Model name to check"),
):
    """Check the configuration can run a natural-language build."""
    from ff1agent.config.loader import load_config, validate_config

    problems = validate_config(load_config(), model)
    if problems:
        for p in problems:
            console.print(f"[red]✗[/red] {p}")
        raise typer.Exit(1)
    console.print("[green]✓[/green] Configuration is valid")


@app.command()
def status():
    """Show ff1 status."""
    from ff1agent.config.loader import find_config_path, load_config

    config_path = find_config_path()
    config = load_config()

    console.print(f"{__logo__} ff1 Status\n")
    console.print(
        f"Config: {config_path} {'[green]✓[/green]' if config_path.exists() else '[red]✗[/red]'}"
    )
    model = config.get_model()
    if model:
        has_key = bool(model.api_key)
        console.print(
            f"Model: {config.default_model} ({model.model}) "
            f"{'[green]✓[/green]' if has_key else '[dim]no API key[/dim]'}"
        )
    else:
        console.print(f"Model: {config.default_model} [red]not configured[/red]")
    console.print(
        f"Signing key: {'[green]✓[/green]' if config.playlist.private_key else '[dim]not set[/dim]'}"
    )

    table = Table(title="Devices", show_header=True)
    table.add_column("Name")
    table.add_column("Host")
    for d in config.ff1_devices.devices:
        table.add_row(d.name or "-", d.host or "-")
    console.print(table)

    servers = Table(title="Feed servers", show_header=True)
    servers.add_column("#")
    servers.add_column("URL")
    servers.add_column("API key")
    for i, s in enumerate(config.feed.all_servers(), 1):
        servers.add_row(str(i), s.base_url, "✓" if s.api_key else "-")
    console.print(servers)
