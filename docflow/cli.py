"""
Command-line interface for docflow.
"""

import sys
from pathlib import Path

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table

from docflow import __version__
from docflow.converter import ConversionProgress, convert_sync
from docflow.exceptions import DocFlowError
from docflow.options import ConversionOptions, Margins
from docflow.parser import parse_document
from docflow.utils import (
    configure_logging,
    count_words,
    format_file_size,
    format_processing_time,
    safe_filename,
)
from docflow.validators import validate_source_path

console = Console()


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose):
    """
    DocFlow CLI - Convert PDF documents into editable Word files.
    """
    configure_logging(verbose)


@cli.command(name="convert")
@click.argument("input_pdf", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--output", "-o",
    default=None,
    help="Output .docx path (defaults to the input name beside the input)",
    type=click.Path(dir_okay=False),
)
@click.option("--title", default=None, help="Document title override")
@click.option("--author", default=None, help="Document author override")
@click.option("--subject", default=None, help="Document subject override")
@click.option("--font-family", default="Calibri", show_default=True, help="Body font")
@click.option("--font-size", default=11.0, show_default=True, type=float, help="Body font size in points")
@click.option("--line-spacing", default=1.15, show_default=True, type=float, help="Line spacing multiple")
@click.option("--margin", default=1.0, show_default=True, type=float, help="Page margin in inches (all sides)")
@click.option("--simple", is_flag=True, help="Plain text only: no title page, images or tables")
@click.option("--no-formatting", is_flag=True, help="Do not preserve bold, italic or heading runs")
@click.option("--no-metadata", is_flag=True, help="Skip document properties and the title page")
@click.option("--no-page-numbers", is_flag=True, help="Omit the per-page headings")
@click.option("--no-header", is_flag=True, help="Omit the running header")
@click.option("--no-footer", is_flag=True, help="Omit the page number footer")
def convert_command(
    input_pdf,
    output,
    title,
    author,
    subject,
    font_family,
    font_size,
    line_spacing,
    margin,
    simple,
    no_formatting,
    no_metadata,
    no_page_numbers,
    no_header,
    no_footer,
):
    """
    Convert a PDF file into a Word document.

    Examples:

        docflow convert report.pdf

        docflow convert report.pdf -o out/report.docx --title "Q3 Report"
    """
    source = Path(input_pdf)
    destination = Path(output) if output else source.with_name(safe_filename(source.name))
    options = ConversionOptions(
        title=title,
        author=author,
        subject=subject,
        preserve_formatting=not no_formatting,
        include_metadata=not no_metadata,
        include_page_numbers=not no_page_numbers,
        include_headers=not no_header,
        include_footers=not no_footer,
        font_size=font_size,
        font_family=font_family,
        line_spacing=line_spacing,
        margins=Margins(top=margin, bottom=margin, left=margin, right=margin),
        simple_mode=simple,
    )

    console.print(f"\n[bold cyan]Converting {source.name}...[/bold cyan]")
    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Starting", total=100)

        def update_progress(update: ConversionProgress):
            progress.update(task, completed=update.progress, description=update.message)

        result = convert_sync(source, options, update_progress)

    if not result.success:
        console.print(f"[bold red]✗ Error:[/bold red] {result.error}")
        sys.exit(1)

    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_bytes(result.blob)

    summary = Table(title="Conversion Summary", show_header=False)
    summary.add_column("Property", style="cyan")
    summary.add_column("Value", style="green")
    summary.add_row("Output", str(destination))
    summary.add_row("Size", format_file_size(len(result.blob)))
    summary.add_row("Pages", str(result.metadata.converted_pages))
    summary.add_row("Words", str(result.metadata.word_count))
    summary.add_row("Time", format_processing_time(result.metadata.conversion_time))
    console.print(summary)

    for warning in result.warnings or []:
        console.print(f"[yellow]! {warning}[/yellow]")
    console.print(f"\n[bold green]✓ Saved {destination.name}[/bold green]\n")


@cli.command(name="inspect")
@click.argument("input_pdf", type=click.Path(exists=True, dir_okay=False))
def inspect_command(input_pdf):
    """
    Display what the parser extracts from a PDF file.

    Example:

        docflow inspect report.pdf
    """
    path = Path(input_pdf)
    try:
        validate_source_path(path)
        data = path.read_bytes()
        content = parse_document(data)
    except DocFlowError as e:
        console.print(f"[bold red]✗ Error:[/bold red] {e}")
        sys.exit(1)

    table = Table(title=f"PDF Information: {path.name}")
    table.add_column("Property", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")
    table.add_row("File Size", format_file_size(len(data)))
    table.add_row("Pages", str(content.total_pages))
    table.add_row("Words", str(count_words(content.full_text)))
    table.add_row("Images", str(len(content.images)))
    table.add_row("Tables", str(len(content.tables)))
    metadata = content.metadata
    for label, value in (
        ("Title", metadata.title),
        ("Author", metadata.author),
        ("Subject", metadata.subject),
        ("Creator", metadata.creator),
        ("Producer", metadata.producer),
    ):
        if value:
            table.add_row(label, value)
    if metadata.creation_date:
        table.add_row("Created", metadata.creation_date.isoformat())

    console.print()
    console.print(table)
    for warning in content.warnings:
        console.print(f"[yellow]! {warning}[/yellow]")
    console.print()


def main():
    cli()


if __name__ == "__main__":
    main()
