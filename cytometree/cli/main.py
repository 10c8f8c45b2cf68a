"""Command-line interface for cytometree.

Provides CLI commands to build a tree from a CSV event matrix, query a
phenotype table, and score labels against a reference.
"""

import logging
from pathlib import Path
from typing import Optional, Tuple

import click

from .. import __version__
from ..core.annotation import parse_phenotype, retrieve_populations
from ..core.engine import CytomeTreeEngine
from ..core.evaluation import f_measure, f_measure_no_zero, f_measure_table
from ..core.export import export_results, read_phenotype_table
from ..core.tree import CytomeTreeConfig
from ..io import get_logger, load_event_matrix, load_label_column, read_run_history


def setup_logging(verbose: bool = False, debug: bool = False) -> logging.Logger:
    """Setup logging for CLI commands."""
    level = logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    return logging.getLogger("cytometree")


@click.group()
@click.version_option(version=__version__, prog_name="cytometree")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool) -> None:
    """cytometree: binary tree partitioning of cytometry events.

    Examples:

        # Build a tree and annotate its leaves
        cytometree build --input events.csv --out results/ --minleaf 50

        # Force the first split on CD4
        cytometree build --input events.csv --out results/ --force-marker CD4

        # Find the CD4+ CD8- populations
        cytometree retrieve --phenotypes results/cytometree_phenotypes.csv --query "CD4+ CD8-"

        # Compare with manual gating
        cytometree fmeasure --ref gating.csv --ref-column label --pred results/cytometree_labels.csv
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    ctx.obj["logger"] = setup_logging(verbose, debug)


@cli.command()
@click.option("--input", "-i", "input_path", required=True, type=click.Path(exists=True),
              help="Event matrix CSV (one row per event)")
@click.option("--out", "-o", "output_path", required=True, type=click.Path(),
              help="Output directory")
@click.option("--config", "-c", type=click.Path(exists=True),
              help="CytomeTree configuration file (YAML)")
@click.option("--minleaf", type=int, default=None, help="Minimum number of events per leaf")
@click.option("--t", "t", type=float, default=None, help="Split threshold on the normalized AIC difference")
@click.option("--force-marker", "force_markers", multiple=True,
              help="Marker forced at the next tree level (repeatable, in order)")
@click.option("--marker", "markers", multiple=True,
              help="Marker column to use (repeatable; default: all numeric columns)")
@click.option("--id-column", default=None, help="Event ID column")
@click.option("--drop-column", "drop_columns", multiple=True,
              help="Column to ignore, e.g. a reference label (repeatable)")
@click.option("--n-workers", type=int, default=None, help="Parallel workers for node fitting")
@click.option("--log-file", type=click.Path(), default=None, help="Also log to this file")
@click.pass_context
def build(
    ctx: click.Context,
    input_path: str,
    output_path: str,
    config: Optional[str],
    minleaf: Optional[int],
    t: Optional[float],
    force_markers: Tuple[str, ...],
    markers: Tuple[str, ...],
    id_column: Optional[str],
    drop_columns: Tuple[str, ...],
    n_workers: Optional[int],
    log_file: Optional[str],
) -> None:
    """Build a CytomeTree from an event matrix and export the results."""
    logger = ctx.obj["logger"]
    if log_file:
        logger, log_path = get_logger("cytometree", log_file, level=logging.DEBUG if ctx.obj["debug"] else logging.INFO)
        click.echo(f"Logging to: {log_path}")

    run_config = CytomeTreeConfig.from_yaml(Path(config)) if config else CytomeTreeConfig.default()
    run_config = run_config.with_overrides(
        minleaf=minleaf,
        t=t,
        force_first_markers=list(force_markers) if force_markers else None,
        n_workers=n_workers,
    )

    try:
        events = load_event_matrix(
            input_path,
            markers=list(markers) or None,
            id_column=id_column,
            drop_columns=list(drop_columns),
        )
        result = CytomeTreeEngine(run_config, logger=logger).run(events)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    paths = export_results(result, output_path, event_id_name=id_column)

    click.echo(f"Tree complete: {result.tree.n_leaves} leaves, {len(result.phenotypes)} phenotypes")
    for depth, level in enumerate(result.marker_tree):
        click.echo(f"  depth {depth}: {', '.join(level)}")
    click.echo(f"Output saved to: {paths['labels'].parent}")
    n_runs = len(read_run_history(paths["history"]))
    click.echo(f"Run history: {n_runs} run(s) in {paths['history'].name}")


@cli.command()
@click.option("--phenotypes", "-p", "phenotypes_path", required=True, type=click.Path(exists=True),
              help="Phenotype table CSV written by `cytometree build`")
@click.option("--query", "-q", "queries", required=True, multiple=True,
              help='Phenotype to retrieve, e.g. "CD4+ CD8-" (repeatable)')
@click.option("--allow-undetermined", is_flag=True,
              help="Let markers never used on a leaf's path match any level")
@click.option("--out", "-o", "output_path", type=click.Path(), default=None,
              help="Write the matches to this CSV")
@click.pass_context
def retrieve(
    ctx: click.Context,
    phenotypes_path: str,
    queries: Tuple[str, ...],
    allow_undetermined: bool,
    output_path: Optional[str],
) -> None:
    """Find the populations matching phenotype queries."""
    table = read_phenotype_table(phenotypes_path)
    try:
        matches = retrieve_populations(
            [parse_phenotype(q) for q in queries],
            table,
            allow_undetermined=allow_undetermined,
        )
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    for _, row in matches.iterrows():
        labels = ",".join(str(v) for v in row["labels"]) or "-"
        click.echo(f"{row['phenotype']}\tlabels={labels}\tcount={row['count']}\tprop={row['prop']:.4f}")

    if output_path:
        out = matches.copy()
        out["labels"] = out["labels"].apply(lambda values: ";".join(str(v) for v in values))
        out.to_csv(output_path, index=False)
        ctx.obj["logger"].info("Wrote %s", output_path)


@cli.command()
@click.option("--ref", "ref_path", required=True, type=click.Path(exists=True),
              help="CSV with the reference labels")
@click.option("--ref-column", default="label", help="Reference label column")
@click.option("--pred", "pred_path", required=True, type=click.Path(exists=True),
              help="CSV with the predicted labels")
@click.option("--pred-column", default="label", help="Predicted label column")
@click.option("--ignore-zero", is_flag=True, help="Ignore events with reference label 0")
@click.option("--details", is_flag=True, help="Print the per-class table")
@click.pass_context
def fmeasure(
    ctx: click.Context,
    ref_path: str,
    ref_column: str,
    pred_path: str,
    pred_column: str,
    ignore_zero: bool,
    details: bool,
) -> None:
    """Compute the F-measure of predicted labels against reference labels."""
    try:
        reference = load_label_column(ref_path, ref_column)
        predicted = load_label_column(pred_path, pred_column)
        score = f_measure_no_zero(reference, predicted) if ignore_zero else f_measure(reference, predicted)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    if details:
        if ignore_zero:
            keep = reference != 0
            reference, predicted = reference[keep], predicted[keep]
        click.echo(f_measure_table(reference, predicted).to_string(index=False))
    click.echo(f"F-measure: {score:.4f}")


def main() -> None:
    """Main entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
