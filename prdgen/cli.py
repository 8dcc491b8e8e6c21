from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.prompt import Prompt
from rich.table import Table

from prdgen import personas
from prdgen.config import get_settings
from prdgen.llm.credentials import REMOTE_MANAGED, mask_key
from prdgen.llm.errors import ClassifiedError, ErrorKind
from prdgen.llm.service import DispatchService, credential_store_from_settings
from prdgen.llm.types import Message
from prdgen.logs import setup_logging
from prdgen.prd import PRDForm, build_chat_request, build_prd_request, load_form_file

app = typer.Typer(add_completion=False, help="Generate Product Requirements Documents with an LLM.")
keys_app = typer.Typer(add_completion=False, help="Manage provider API keys.")
app.add_typer(keys_app, name="keys")
console = Console()


def _service() -> DispatchService:
    return DispatchService.from_settings(get_settings())


def _fail(e: ClassifiedError) -> None:
    where = f" ({e.provider})" if e.provider else ""
    console.print(f"[red]{e.kind.value}[/red]{where}: {escape(e.message)}")
    if e.kind is ErrorKind.MISSING_CREDENTIAL:
        console.print(f"Configure a key with: prdgen keys set {e.provider or '<provider>'}")
    elif e.retryable:
        console.print("[yellow]This error is usually temporary; try again shortly.[/yellow]")
    raise typer.Exit(code=1)


@app.callback()
def main(log_level: Optional[str] = typer.Option(None, help="DEBUG, INFO, WARNING or ERROR")):
    setup_logging(log_level or get_settings().log_level)


@app.command()
def models():
    """List the models prdgen knows about."""
    svc = _service()
    table = Table(title="Models")
    for col in ("Provider", "Model", "Name", "Max tokens", "$/1k tokens", "Streaming"):
        table.add_column(col)
    for p in svc.catalog.list_providers():
        for m in p.models:
            table.add_row(
                p.id,
                m.id,
                m.name,
                str(m.max_tokens),
                f"{m.cost_per_1k_tokens:g}",
                "yes" if m.supports_streaming else "no",
            )
    console.print(table)


@keys_app.command("status")
def keys_status():
    """Show which providers have a key configured."""
    settings = get_settings()
    store = credential_store_from_settings(settings)
    svc = _service()
    table = Table(title="API keys")
    table.add_column("Provider")
    table.add_column("Key")
    for p in svc.catalog.list_providers():
        try:
            key = store.get(p.id)
        except ClassifiedError as e:
            _fail(e)
        except ValueError as e:
            console.print(f"[red]Unreadable credentials[/red]: {escape(str(e))}")
            raise typer.Exit(code=1)
        if key is None:
            shown = "[dim]not configured[/dim]" if p.api_key_required else "[dim]not required[/dim]"
        elif key == REMOTE_MANAGED:
            shown = "[green]configured (secret proxy)[/green]"
        else:
            shown = f"[green]{mask_key(key)}[/green]"
        table.add_row(p.name, shown)
    console.print(table)


@keys_app.command("set")
def keys_set(
    provider: str = typer.Argument(..., help="Provider id, e.g. openai"),
    key: str = typer.Option(..., "--key", prompt=True, hide_input=True, help="API key"),
):
    """Save (or overwrite) the API key for a provider."""
    svc = _service()
    if svc.catalog.find_provider(provider) is None:
        known = [p.id for p in svc.catalog.list_providers()]
        console.print(f"[red]Unknown provider[/red] {provider}. Available: {known}")
        raise typer.Exit(code=1)
    store = credential_store_from_settings(get_settings())
    try:
        store.set(provider, key)
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1)
    except ClassifiedError as e:
        _fail(e)
    console.print(f"[green]Saved[/green] {provider} API key")


@keys_app.command("remove")
def keys_remove(provider: str = typer.Argument(..., help="Provider id")):
    """Forget the API key for a provider."""
    store = credential_store_from_settings(get_settings())
    try:
        store.remove(provider)
    except ClassifiedError as e:
        _fail(e)
    console.print(f"Removed {provider} API key")


@app.command()
def generate(
    form: Optional[Path] = typer.Option(None, help="YAML file with the form fields"),
    app_name: Optional[str] = typer.Option(None, help="App name"),
    description: Optional[str] = typer.Option(None, help="What the app does"),
    target_audience: Optional[str] = typer.Option(None),
    platform: Optional[str] = typer.Option(None),
    primary_goals: Optional[str] = typer.Option(None),
    key_features: Optional[str] = typer.Option(None),
    tech_stack: Optional[str] = typer.Option(None),
    timeline: Optional[str] = typer.Option(None),
    model: Optional[str] = typer.Option(None, help="Model id (see `prdgen models`)"),
    temperature: Optional[float] = typer.Option(None, help="0.0 - 2.0"),
    max_tokens: int = typer.Option(4000, help="Upper bound on output tokens"),
    stream: bool = typer.Option(True, help="Print the document as it is generated"),
    out: Optional[Path] = typer.Option(None, help="Write the Markdown document to this path."),
):
    """Generate a PRD from a short description of an app idea."""
    try:
        if form is not None:
            prd_form = load_form_file(str(form))
        else:
            prd_form = PRDForm(
                app_name=app_name or "",
                description=description or "",
                target_audience=target_audience,
                platform=platform,
                primary_goals=primary_goals,
                key_features=key_features,
                tech_stack=tech_stack,
                timeline=timeline,
            )
    except (ValidationError, ValueError, OSError) as e:
        console.print(f"[red]Invalid form[/red]: {escape(str(e))}")
        raise typer.Exit(code=1)

    svc = _service()
    req = build_prd_request(prd_form, model=model, temperature=temperature, max_tokens=max_tokens, stream=stream)
    try:
        if stream:
            parts: List[str] = []
            for text in svc.stream(req):
                parts.append(text)
                console.print(text, end="", markup=False, highlight=False, soft_wrap=True)
            console.print()
            document = "".join(parts)
        else:
            resp = svc.dispatch(req)
            document = resp.content
            console.print(Markdown(document))
            found = svc.catalog.find_model(req.model)
            cost = f", ~${found.estimate_cost(resp.usage.total_tokens):.4f}" if found else ""
            console.print(f"[dim]{resp.usage.total_tokens} tokens{cost}[/dim]")
    except ClassifiedError as e:
        _fail(e)

    if out:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(document, encoding="utf-8")
        console.print(f"Wrote PRD to {out}")


@app.command()
def chat(
    persona: str = typer.Option("product_manager", help=f"One of {list(personas.PERSONAS)}"),
    model: Optional[str] = typer.Option(None, help="Model id; defaults to the persona's preferred model"),
    context: Optional[Path] = typer.Option(None, help="Markdown document (e.g. a PRD) to discuss"),
):
    """Talk about a PRD with one of the reviewer personas. Type /exit to leave."""
    svc = _service()
    doc = context.read_text(encoding="utf-8") if context else None
    history: List[Message] = []
    console.print(f"[bold cyan]Chatting with the {persona} persona[/bold cyan] (/exit to quit)")
    while True:
        try:
            line = Prompt.ask("[bold]you[/bold]", console=console)
        except (EOFError, KeyboardInterrupt):
            break
        if line.strip() in ("/exit", "/quit"):
            break
        if not line.strip():
            continue
        req = build_chat_request(history, line, persona_id=persona, model=model, context=doc)
        parts: List[str] = []
        try:
            for text in svc.stream(req):
                parts.append(text)
                console.print(text, end="", markup=False, highlight=False, soft_wrap=True)
        except ClassifiedError as e:
            history.pop()
            where = f" ({e.provider})" if e.provider else ""
            console.print(f"\n[red]{e.kind.value}[/red]{where}: {escape(e.message)}")
            continue
        console.print()
        history.append(Message("assistant", "".join(parts)))


if __name__ == "__main__":
    app()
