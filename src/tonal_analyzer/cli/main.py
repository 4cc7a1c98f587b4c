"""Main CLI entry point for Tonal Analyzer."""

from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from tonal_analyzer import __version__
from tonal_analyzer.config import get_settings
from tonal_analyzer.models.analysis import HarmonicAnalysis
from tonal_analyzer.theory.profiles import KEY_PROFILES
from tonal_analyzer.theory.scales import NOTE_NAMES, key_name

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="tonal-analyzer")
def main() -> None:
    """Tonal Analyzer - Harmonic analysis of MIDI note streams.

    Find key regions and modulations, label chords with Roman numerals and
    harmonic function, and trace tension and cadences over time.
    """
    pass


@main.command()
@click.argument("midi_file", type=click.Path(path_type=Path))
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    help="Output directory (default: ./output/<file_name>)",
)
@click.option(
    "--profile",
    type=str,
    help=f"Key profile ({', '.join(KEY_PROFILES)})",
)
@click.option("--window-bars", type=float, help="Key window length in bars")
@click.option("--hop-bars", type=float, help="Hop between key windows in bars")
@click.option(
    "--min-stable",
    type=int,
    help="Consecutive windows required to commit a key change",
)
@click.option(
    "--threshold",
    type=float,
    help="Confidence margin a new key needs over the current one",
)
@click.option("--tempo", type=float, help="Tempo (BPM) used when the file has none")
def analyze(
    midi_file: Path,
    output: Path | None,
    profile: str | None,
    window_bars: float | None,
    hop_bars: float | None,
    min_stable: int | None,
    threshold: float | None,
    tempo: float | None,
) -> None:
    """Analyze the harmony of a MIDI file.

    Runs MIDI_FILE through the full pipeline:

    \b
    1. Read notes, tempo and meter
    2. Aggregate pitch-class windows
    3. Estimate keys and track modulations
    4. Detect chords and label their function
    5. Compute tension and find cadences
    6. Write analysis.json
    """
    from tonal_analyzer.pipeline import create_default_pipeline

    if not midi_file.exists():
        console.print(f"[red]Error: File not found: {midi_file}[/red]")
        raise SystemExit(1)

    settings = get_settings()

    # Apply CLI overrides
    overrides = {
        "profile": profile,
        "window_bars": window_bars,
        "hop_bars": hop_bars,
        "min_stable_windows": min_stable,
        "confidence_threshold": threshold,
        "tempo_bpm": tempo,
    }
    try:
        for field_name, value in overrides.items():
            if value is not None:
                setattr(settings, field_name, value)
    except ValidationError as e:
        for error in e.errors():
            console.print(f"[red]Error: {error['loc'][0]}: {error['msg']}[/red]")
        raise SystemExit(1)

    if output is None:
        output = settings.output_dir / midi_file.stem

    console.print(f"[bold blue]Tonal Analyzer[/bold blue] v{__version__}")
    console.print(f"Analyzing: [green]{midi_file}[/green]")
    console.print(f"Output: [green]{output}[/green]")
    console.print()

    pipeline = create_default_pipeline(settings)
    result = pipeline.run(midi_file, output)

    if result.success:
        console.print("[bold green]Analysis complete![/bold green]")
        if result.analysis is not None:
            _print_summary(result.analysis)
        console.print(f"Output: {result.output_path}")
        if result.warnings:
            console.print("[yellow]Notes:[/yellow]")
            for warning in result.warnings:
                console.print(f"  - {warning}")
    else:
        console.print("[bold red]Analysis failed![/bold red]")
        for error in result.errors:
            console.print(f"[red]Error: {error}[/red]")
        raise SystemExit(1)


def _print_summary(analysis: HarmonicAnalysis) -> None:
    """Print key regions and output counts."""
    if analysis.key_tonic is not None and analysis.key_mode is not None:
        console.print(
            f"Key: [bold]{key_name(analysis.key_tonic, analysis.key_mode)}[/bold] "
            f"(confidence {analysis.key_confidence:.2f})"
        )

    table = Table(title="Key regions")
    table.add_column("Start", justify="right")
    table.add_column("End", justify="right")
    table.add_column("Key")
    table.add_column("Confidence", justify="right")
    table.add_column("Ambiguity", justify="right")
    for region in analysis.key_regions:
        table.add_row(
            f"{region.start:.2f}",
            f"{region.end:.2f}",
            key_name(region.tonic, region.mode),
            f"{region.confidence:.2f}",
            f"{region.ambiguity:.2f}",
        )
    console.print(table)

    progression = " ".join(chord.numeral or chord.name for chord in analysis.chords[:16])
    if len(analysis.chords) > 16:
        progression += " ..."
    console.print(f"Chords ({len(analysis.chords)}): {progression}")
    if analysis.cadences:
        cadences = ", ".join(f"{c.type}@{c.time:.1f}s" for c in analysis.cadences)
        console.print(f"Cadences ({len(analysis.cadences)}): {cadences}")
    if analysis.tension:
        peak = max(analysis.tension, key=lambda sample: sample.value)
        console.print(f"Peak tension: {peak.value:.2f} at {peak.time:.2f}s")


@main.command()
def profiles() -> None:
    """List the available key profiles."""
    table = Table(title="Key profiles")
    table.add_column("Name", style="cyan")
    table.add_column("Major (from tonic)")
    table.add_column("Minor (from tonic)")
    for name, profile in KEY_PROFILES.items():
        table.add_row(
            name,
            " ".join(f"{w:g}" for w in profile.major),
            " ".join(f"{w:g}" for w in profile.minor),
        )
    console.print(table)
    console.print(f"Pitch classes: {' '.join(NOTE_NAMES)}")


@main.command()
def info() -> None:
    """Show current configuration."""
    settings = get_settings()

    console.print("[bold]Configuration[/bold]")
    console.print(f"  Output directory: {settings.output_dir}")
    console.print(f"  Key profile: {settings.profile}")
    console.print(f"  Key window: {settings.window_bars:g} bars, hop {settings.hop_bars:g} bars")
    console.print(f"  Min stable windows: {settings.min_stable_windows}")
    console.print(f"  Confidence threshold: {settings.confidence_threshold}")
    console.print(f"  Min region: {settings.min_region_bars:g} bars")
    console.print(f"  Chord window: {settings.chord_window_bars:g} bars")
    console.print(f"  Diatonic bonus: {settings.diatonic_bonus}")
    console.print(f"  Non-chord penalty: {settings.non_chord_penalty}")
    console.print(f"  Missing-tone penalty: {settings.missing_tone_penalty}")
    console.print(f"  Collapse repeated chords: {settings.collapse_repeated_chords}")
    console.print(f"  Voicing-aware cadences: {settings.voicing_cadences}")
    console.print(
        f"  Fallback timing: {settings.tempo_bpm:g} BPM, {settings.beats_per_bar} beats per bar"
    )
    console.print(f"  Exclude drums: {settings.exclude_drums}")


if __name__ == "__main__":
    main()
