"""
CLI commands: lookup, mutate, dump-expression.

Results go to stdout untouched so they can be piped; errors go to stderr.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.markup import escape

from silos.config import get_engine_config
from silos.engine import SilosEngine, split_request
from silos.exceptions import SilosError
from silos.grammar import GrammarRegistry, language_for_path
from silos.logging_config import logger, setup_logging
from silos.semantic import SentenceTransformerEmbedder, backend_for

app = typer.Typer(help="Retrieve snippets and apply structural mutations described in plain language.")
console = Console(stderr=True)


def _fail(error: Any) -> None:
    console.print(f"[red]Error:[/red] {escape(str(error))}")
    raise typer.Exit(code=1)


def _read_source(file: Path) -> str:
    try:
        return file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        _fail(f"Cannot read '{file}': {e}")


def build_engine(config: Dict[str, Any], definitions: Path) -> SilosEngine:
    embedder = SentenceTransformerEmbedder(
        backend=backend_for(config["gpu"]),
        model_name=config["model_id"],
        revision=config["revision"],
        wait_timeout=config["device_wait_timeout"],
    )
    return SilosEngine.from_definitions(definitions, embedder)


@app.callback()
def global_options(
    ctx: typer.Context,
    gpu: Optional[int] = typer.Option(None, "--gpu", help="Run the embedding model on the Nth GPU device"),
    model_id: Optional[str] = typer.Option(None, "--model-id", help="sentence-transformers model to embed with"),
    revision: Optional[str] = typer.Option(None, "--revision", help="Model revision or branch"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    if verbose:
        setup_logging(level="DEBUG", force=True)
    try:
        ctx.obj = get_engine_config({"gpu": gpu, "model_id": model_id, "revision": revision})
    except SilosError as e:
        _fail(e)


@app.command("dump-expression")
def dump_expression_cmd(
    file: Path = typer.Argument(..., help="Source file to dump", exists=True, dir_okay=False),
    lang: Optional[str] = typer.Option(None, "--lang", "-l", help="Language tag (default: from extension)"),
):
    """
    Print the S-expression of a source file, to help write rule expressions.
    """
    language = lang or language_for_path(file)
    if not language:
        _fail(f"Cannot infer a language from '{file.name}'; pass --lang")
    try:
        typer.echo(GrammarRegistry().dump_expression(_read_source(file), language))
    except SilosError as e:
        _fail(e)


@app.command("lookup")
def lookup_cmd(
    ctx: typer.Context,
    request: str = typer.Argument(..., help='Request of the form "description in language"'),
    definitions: Optional[Path] = typer.Option(None, "--definitions", "-d", help="Definitions directory"),
    top_k: int = typer.Option(1, "--top-k", "-k", min=1, help="Number of snippets to print"),
):
    """
    Print the snippet(s) closest to a description.
    """
    config = ctx.obj
    try:
        description, language = split_request(request)
        engine = build_engine(config, definitions or Path(config["definitions"]))
        bodies = engine.lookup_snippets(description, language, top_k)
    except SilosError as e:
        _fail(e)
        return

    for body in bodies:
        typer.echo(body)


@app.command("mutate")
def mutate_cmd(
    ctx: typer.Context,
    description: str = typer.Argument(..., help="What the mutation should do"),
    file: Path = typer.Argument(..., help="Source file to mutate", exists=True, dir_okay=False),
    definitions: Optional[Path] = typer.Option(None, "--definitions", "-d", help="Definitions directory"),
    lang: Optional[str] = typer.Option(None, "--lang", "-l", help="Language tag (default: from extension)"),
    write: bool = typer.Option(False, "--write", "-w", help="Write the result back to FILE"),
):
    """
    Apply the closest matching mutation to FILE and print the result.
    """
    config = ctx.obj
    language = lang or language_for_path(file)
    if not language:
        _fail(f"Cannot infer a language from '{file.name}'; pass --lang")

    body = _read_source(file)
    try:
        engine = build_engine(config, definitions or Path(config["definitions"]))
        output = engine.mutate(description, language, body)
    except SilosError as e:
        _fail(e)
        return

    if write:
        file.write_text(output, encoding="utf-8")
        logger.info(f"Wrote mutated {file}")
    else:
        typer.echo(output, nl=False)


def main():
    app()


if __name__ == "__main__":
    main()
