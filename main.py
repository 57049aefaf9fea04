import logging
from pathlib import Path
from typing import Optional

import typer
from InquirerPy import inquirer

from src.embedcache import CacheError, CacheConfig, EmbeddingCache, infer_format
from src.embedcache.log import configure_logging
from src.embeddings import CachedEmbedder, TransformerEmbedder, get_spec

app = typer.Typer(help="Inspect and maintain embedding cache files.")

FORMAT_HELP = "Cache file format (json or binary). Inferred from the suffix when omitted."


@app.callback()
def configure(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log cache activity at debug level.")) -> None:
    configure_logging(logging.DEBUG if verbose else logging.WARNING)


def _load(path: Path, fmt: Optional[str]) -> EmbeddingCache:
    cache = EmbeddingCache()
    try:
        cache.load_from_disk(path, fmt=fmt)
    except (CacheError, ValueError) as exc:
        raise typer.BadParameter(str(exc), param_hint="PATH") from exc
    return cache


@app.command()
def stats(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Cache file to read."),
    fmt: Optional[str] = typer.Option(None, "--format", help=FORMAT_HELP),
) -> None:
    """
    Print hit/miss counters, size and memory estimate for a cache file.
    """
    cache = _load(path, fmt)
    report = cache.get_stats()
    usage = cache.memory_usage()
    typer.echo(f"file:        {path} ({fmt or infer_format(path)})")
    typer.echo(f"entries:     {report.size}/{report.max_size}")
    typer.echo(f"hits:        {report.hits}")
    typer.echo(f"misses:      {report.misses}")
    typer.echo(f"sets:        {report.sets}")
    typer.echo(f"evictions:   {report.evictions}")
    typer.echo(f"hit rate:    {report.hit_rate}")
    typer.echo(f"memory:      {usage.kilobytes:.2f} KB")


@app.command()
def top(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Cache file to read."),
    limit: int = typer.Option(10, "--limit", min=1, help="Number of entries to show."),
    fmt: Optional[str] = typer.Option(None, "--format", help=FORMAT_HELP),
) -> None:
    """
    List the most frequently hit entries.
    """
    cache = _load(path, fmt)
    for rank, entry in enumerate(cache.top_entries(limit), start=1):
        typer.echo(f"{rank:>3}. hits={entry.hits:<6} {entry.text}")


@app.command()
def convert(
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="Cache file to read."),
    destination: Path = typer.Argument(..., dir_okay=False, help="Where to write the converted file."),
    source_format: Optional[str] = typer.Option(None, "--from", help=FORMAT_HELP),
    target_format: Optional[str] = typer.Option(None, "--to", help=FORMAT_HELP),
) -> None:
    """
    Re-encode a cache file between the JSON and binary formats.
    """
    cache = _load(source, source_format)
    target = target_format or infer_format(destination)
    try:
        cache.save_to_disk(destination, fmt=target)
    except (CacheError, ValueError) as exc:
        typer.echo(f"Conversion failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Wrote {cache.size()} entries to {destination} ({target})")


@app.command()
def prune(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Cache file to prune in place."),
    min_hits: int = typer.Option(1, "--min-hits", min=0, help="Keep entries with at least this many hits."),
    fmt: Optional[str] = typer.Option(None, "--format", help=FORMAT_HELP),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """
    Drop entries hit fewer than --min-hits times and rewrite the file.
    """
    cache = _load(path, fmt)
    cold = sum(1 for entry in cache.snapshot().entries if entry[1].hit_count < min_hits)
    if cold == 0:
        typer.echo("Nothing to prune.")
        return
    if not yes:
        confirmed = inquirer.confirm(
            message=f"Remove {cold} of {cache.size()} entries from {path}?",
            default=False,
        ).execute()
        if not confirmed:
            typer.echo("Aborted.")
            raise typer.Exit(code=1)

    removed = cache.prune(min_hits)
    cache.save_to_disk(path, fmt=fmt)
    typer.echo(f"Removed {removed} entries; {cache.size()} remain.")


@app.command()
def warm(
    corpus: Path = typer.Argument(..., exists=True, dir_okay=False, help="Text file, one passage per line."),
    cache_path: Path = typer.Argument(..., dir_okay=False, help="Cache file to extend (created if missing)."),
    model: str = typer.Option("minilm", "--model", help="Embedder key from the registry."),
    max_size: int = typer.Option(10_000, "--max-size", min=1, help="Capacity for a new cache."),
    batch_size: int = typer.Option(32, "--batch-size", min=1, help="Texts embedded concurrently."),
    device: str = typer.Option("cpu", "--device", help="Torch device for the encoder."),
    fmt: Optional[str] = typer.Option(None, "--format", help=FORMAT_HELP),
) -> None:
    """
    Embed every non-empty line of CORPUS and persist the vectors to CACHE_PATH.
    """
    try:
        spec = get_spec(model)  # type: ignore[arg-type]
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--model") from exc
    if cache_path.exists():
        cache = _load(cache_path, fmt)
    else:
        cache = EmbeddingCache(CacheConfig(max_size=max_size, dimensions=spec.dimensions))

    texts = [line.strip() for line in corpus.read_text(encoding="utf-8").splitlines() if line.strip()]
    embedder = CachedEmbedder(TransformerEmbedder.from_spec(spec, device=device), cache=cache, batch_size=batch_size)
    with typer.progressbar(length=len(texts), label="Embedding") as progress:
        embedder.embed_documents(texts, on_progress=lambda done, total: progress.update(1))

    cache.save_to_disk(cache_path, fmt=fmt)
    typer.echo(f"Cached {cache.size()} embeddings ({cache.get_stats().hit_rate} hit rate) in {cache_path}")


if __name__ == "__main__":
    app()
