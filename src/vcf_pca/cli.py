"""vcf-pca: principal component analysis of VCF/BCF genotypes."""

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from . import __version__
from .config import ConfigValidationError, load_config
from .errors import PCAError
from .export import format_score_rows
from .pipeline import SiteSelection, compute_pca, project_pca, read_sample_list


def version_callback(value: bool) -> None:
    if value:
        print(__version__)
        raise typer.Exit()


app = typer.Typer(
    name="vcf-pca", help="Principal component analysis and projection of VCF genotypes"
)
console = Console(stderr=True)


@app.callback()
def main_callback(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version", callback=version_callback, is_eager=True, help="Show version and exit"
        ),
    ] = None,
) -> None:
    pass


def setup_logging(verbose: bool, quiet: bool, default_level: str = "INFO") -> None:
    """Configure logging based on verbosity flags."""
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = getattr(logging, default_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("vcf_pca").setLevel(level)


def _attach_log_file(log_file: Path) -> None:
    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
        )
    )
    logging.getLogger("vcf_pca").addHandler(file_handler)


@app.command()
def pca(
    input_path: Path = typer.Argument(..., help="Genotype source (.vcf, .vcf.gz, .bcf)"),
    out: Annotated[
        Path | None, typer.Option("--out", "-o", help="Write PCA loadings to this sites file")
    ] = None,
    output_type: Annotated[
        str | None,
        typer.Option(
            "--output-type", "-O",
            help="Loadings file type: v (VCF), z (bgzip VCF), b (BCF), u (uncompressed BCF)",
        ),
    ] = None,
    regions: Annotated[
        str | None, typer.Option("--regions", "-r", help="Regions to use, e.g. chr1:100-200 (indexed input)")
    ] = None,
    regions_file: Annotated[
        Path | None, typer.Option("--regions-file", "-R", help="Regions file or sites VCF (indexed input)")
    ] = None,
    targets: Annotated[
        str | None, typer.Option("--targets", "-t", help="Targets to use (streamed, no index needed)")
    ] = None,
    targets_file: Annotated[
        Path | None, typer.Option("--targets-file", "-T", help="Targets file or sites VCF")
    ] = None,
    force: bool = typer.Option(False, "--force", help="Run PCA without -r/-R/-t/-T/-W"),
    samples: Annotated[
        str | None, typer.Option("--samples", "-s", help="Comma-separated list of samples")
    ] = None,
    samples_file: Annotated[
        Path | None, typer.Option("--samples-file", "-S", help="File of samples, one per line")
    ] = None,
    weight: Annotated[
        Path | None, typer.Option("--weight", "-W", help="Sites VCF with PCA weights (projection mode)")
    ] = None,
    npca: Annotated[
        int | None, typer.Option("--npca", "-N", help="Number of principal components [20]")
    ] = None,
    alg: bool = typer.Option(False, "--alg", "-a", help="Use exact SVD (slow)"),
    covdef: Annotated[
        int | None,
        typer.Option(
            "--covdef", "-C",
            help="SVD matrix: 0=(G-mu) 1=(G-mu)/sqrt(p(1-p)) 2=diag-G(2-G) [1]",
        ),
    ] = None,
    extra: Annotated[
        int | None, typer.Option("--extra", "-e", help="Extra vectors for randomized SVD [100]")
    ] = None,
    iterations: Annotated[
        int | None, typer.Option("--iterations", "-q", help="Number of power iterations [10]")
    ] = None,
    svfile: Annotated[
        Path | None, typer.Option("--svfile", "-F", help="File to write singular values to")
    ] = None,
    assume_homref: bool = typer.Option(
        False,
        "--assume-homref",
        "-H",
        help="Assume missing genotypes/sites are homozygous reference (projecting few samples)",
    ),
    maf: Annotated[
        float | None, typer.Option("--maf", "-m", help="Minimum minor allele frequency [0]")
    ] = None,
    thin: Annotated[
        int | None, typer.Option("--thin", "-k", help="Keep every k-th qualifying site [1]")
    ] = None,
    seed: Annotated[
        int | None, typer.Option("--seed", help="Random seed for the randomized SVD")
    ] = None,
    config_file: Annotated[
        Path | None, typer.Option("--config", "-c", help="TOML configuration file")
    ] = None,
    log_file: Annotated[Path | None, typer.Option("--log", help="Write log to file")] = None,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    quiet: bool = typer.Option(False, "--quiet", help="Suppress non-error output"),
) -> None:
    """Compute principal components of a VCF/BCF, or project it onto PCA weights.

    Scores are printed to stdout, one line per sample. With -W, samples are
    projected onto the loadings of a previous run instead of computing a
    decomposition.
    """
    overrides = {
        "npca": npca,
        "exact": True if alg else None,
        "covdef": covdef,
        "extra": extra,
        "iterations": iterations,
        "maf": maf,
        "thin": thin,
        "assume_homref": True if assume_homref else None,
        "seed": seed,
        "output_type": output_type,
    }

    try:
        config = load_config(config_file, overrides)
    except (ConfigValidationError, FileNotFoundError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from None

    setup_logging(verbose, quiet, config.log_level)
    if log_file:
        _attach_log_file(log_file)

    if not force and not (regions or regions_file or targets or targets_file or weight):
        console.print(
            "[red]Error: None of -t/-r/-T/-R/-W were provided.[/red]\n"
            "       PCA does not require a dense set of markers and this can substantially "
            "increase compute time.\n"
            "       You can disable this error with --force"
        )
        raise typer.Exit(1)

    if not input_path.exists():
        console.print(f"[red]Error: Input file not found: {input_path}[/red]")
        raise typer.Exit(1)

    if not quiet:
        console.print(f"Input: {input_path}")

    try:
        sample_subset = read_sample_list(samples, samples_file)

        if weight is not None:
            ignored = [
                flag
                for flag, value in (
                    ("-r", regions), ("-R", regions_file), ("-t", targets), ("-T", targets_file),
                    ("-o", out), ("-O", output_type), ("-F", svfile), ("-a", alg),
                    ("-C", covdef), ("-e", extra), ("-q", iterations), ("-m", maf),
                    ("-k", thin), ("--seed", seed),
                )
                if value is not None and value is not False
            ]
            if ignored:
                console.print(f"[yellow]Warning:[/yellow] {', '.join(ignored)} ignored with -W")
            sample_ids, projection = project_pca(
                input_path, weight, config, samples=sample_subset, max_components=npca
            )
            scores = projection.scores
        else:
            selection = SiteSelection.from_options(regions, regions_file, targets, targets_file)
            result = compute_pca(
                input_path,
                config,
                selection=selection,
                samples=sample_subset,
                svfile=svfile,
                loadings_out=out,
            )
            sample_ids, scores = result.samples, result.scores
    except (PCAError, ConfigValidationError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from None

    for row in format_score_rows(sample_ids, scores):
        typer.echo(row)


@app.command()
def doctor() -> None:
    """Check system dependencies.

    Verifies that all required dependencies are installed and
    provides installation instructions for any that are missing.
    """
    from .doctor import DependencyChecker

    console.print("\n[bold]vcf-pca System Check[/bold]")
    console.print("─" * 30)

    checker = DependencyChecker()
    results = checker.check_all()

    all_passed = True
    for result in results:
        if result.passed:
            version_str = f" ({result.version})" if result.version else ""
            console.print(f"[green]✓[/green] {result.name}{version_str}")
        else:
            all_passed = False
            console.print(f"[red]✗[/red] {result.name}")
            if result.message:
                console.print(f"    {result.message}")

    if not all_passed:
        console.print("\n[yellow]Some checks failed.[/yellow]")
        console.print(f"  htslib: {checker.get_install_instructions('htslib')}")
        raise typer.Exit(1)

    console.print("\n[green]All checks passed.[/green]")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
