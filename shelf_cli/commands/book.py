import click
from shelf.reconcile import AddOptions, OutcomeResult
from ..utils import run

@click.group()
def book():
    """Library book commands"""
    pass

@book.command()
@click.argument('external_id')
@click.option('--monitored/--unmonitored', default=True, help='Monitor the book for downloads')
@click.option('--media-type', default=None, type=click.Choice(['ebook', 'audiobook', 'both']),
              help='Which formats to look for')
@click.pass_obj
def add(app, external_id: str, monitored: bool, media_type: str):
    """Add a catalog book to the library

    Example:
        shelf book add 328151
        shelf book add 328151 --media-type audiobook --unmonitored
    """
    outcome = run(app.controller.add_to_library(external_id, AddOptions(monitored=monitored, media_type=media_type)))
    if outcome.result == OutcomeResult.ERROR:
        raise click.exceptions.Exit(1)

@book.command()
@click.argument('local_id', type=int)
@click.pass_obj
def remove(app, local_id: int):
    """Remove a book from the library by its library ID

    Example:
        shelf book remove 501
    """
    outcome = run(app.controller.remove_from_library(local_id))
    if outcome.result == OutcomeResult.ERROR:
        raise click.exceptions.Exit(1)

@book.command()
@click.argument('local_id', type=int)
@click.option('--on/--off', 'monitored', default=True, help='Start or stop monitoring')
@click.pass_obj
def monitor(app, local_id: int, monitored: bool):
    """Start or stop monitoring a library book

    Example:
        shelf book monitor 501 --off
    """
    outcome = run(app.controller.set_monitored(local_id, monitored))
    if outcome.result == OutcomeResult.ERROR:
        raise click.exceptions.Exit(1)
