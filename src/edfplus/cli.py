"""
Command-line interface for edfplus.

Provides commands for inspecting EDF/EDF+ files: header summary, annotation
listing and structural validation.
"""

import logging
import sys

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version

import click

from edfplus.exceptions import EDFError
from edfplus.logging_config import setup_logging
from edfplus.reader import EDFReader

logger = logging.getLogger(__name__)

try:
    __version__ = get_version("edfplus")
except PackageNotFoundError:
    __version__ = "dev"


def version_callback(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    """Show version."""
    if not value or ctx.resilient_parsing:
        return
    click.echo(f"edfplus, version {__version__}")
    ctx.exit()


def _format_count(reader: EDFReader) -> str:
    count = reader.header.record_count
    if count.is_known:
        return str(count.value)
    return f"unknown ({reader.available_records()} in file)"


@click.group()
@click.option(
    "--version",
    is_flag=True,
    callback=version_callback,
    expose_value=False,
    is_eager=True,
    help="Show version",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--quiet", "-q", is_flag=True, help="Only log warnings and errors")
def cli(verbose: bool, quiet: bool) -> None:
    """edfplus: EDF/EDF+ file inspection tool"""
    setup_logging(verbose=verbose, quiet=quiet, console_format="%(levelname)s: %(message)s")


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def info(path: str) -> None:
    """Show header summary and signal table."""
    try:
        with EDFReader.from_path(path) as edf:
            header = edf.header
            click.echo(f"File:            {path}")
            click.echo(f"Type:            {header.file_type.value}")
            click.echo(f"Start:           {header.start_datetime:%Y-%m-%d %H:%M:%S}")
            if header.is_edf_plus:
                click.echo(f"Start offset:    {edf.start_subsecond:g}s")
                patient = header.patient
                click.echo(f"Patient:         {patient.code or '-'} ({patient.name or '-'})")
                click.echo(f"Equipment:       {header.recording.equipment or '-'}")
            else:
                click.echo(f"Patient:         {header.patient_id or '-'}")
                click.echo(f"Recording:       {header.recording_id or '-'}")
            click.echo(f"Records:         {_format_count(edf)}")
            click.echo(f"Record duration: {header.record_duration:g}s")
            click.echo(f"Duration:        {edf.duration:.1f}s")

            click.echo(f"\n{'#':>3}  {'Label':<16}  {'Rate (Hz)':>10}  {'Unit':<8}  Range")
            click.echo("-" * 60)
            for i, signal in enumerate(header.signals):
                rate = signal.sample_rate(header.record_duration)
                span = (
                    "annotations"
                    if signal.is_annotation
                    else f"{signal.physical_min:g} .. {signal.physical_max:g}"
                )
                click.echo(
                    f"{i:>3}  {signal.label:<16}  {rate:>10g}  "
                    f"{signal.physical_dimension:<8}  {span}"
                )
    except EDFError as e:
        raise click.ClickException(str(e)) from e


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--all", "include_timekeeping", is_flag=True, help="Include timekeeping entries"
)
def annotations(path: str, include_timekeeping: bool) -> None:
    """List decoded annotations sorted by onset."""
    try:
        with EDFReader.from_path(path) as edf:
            found = edf.read_annotations(include_timekeeping=include_timekeeping)
    except EDFError as e:
        raise click.ClickException(str(e)) from e

    if not found:
        click.echo("No annotations found")
        return

    for annotation in found:
        duration = "" if annotation.duration is None else f"{annotation.duration:g}s"
        texts = "; ".join(annotation.texts) if annotation.texts else "(timekeeping)"
        click.echo(f"{annotation.onset:>12.3f}  {duration:>8}  {texts}")
    click.echo(f"\n{len(found)} annotations")


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def validate(path: str) -> None:
    """Read every record and report structural errors."""
    records = 0
    try:
        with EDFReader.from_path(path) as edf:
            for record in edf:
                records += 1
                if edf.header.is_edf_plus:
                    edf.record_onset(record)
            if edf.header.annotation_indices:
                edf.read_annotations()
    except EDFError as e:
        click.echo(f"✗ Invalid after {records} records: {e}", err=True)
        sys.exit(1)

    click.echo(f"✓ {path}: {records} records OK")
