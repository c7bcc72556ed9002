import click
from shelf.models import context_key
from shelf.reconcile import AddOptions
from ..utils import OutcomeTracker, build_state, load_context, run, show_context, sort_filter_options

@click.group()
def series():
    """Series commands"""
    pass

@series.command()
@click.argument('series_id')
@sort_filter_options
@click.pass_obj
def show(app, series_id: str, filter_status: str, sort_field: str, sort_order: str,
         hide_compilations: bool, view_mode: str, refresh: bool):
    """Show the books of a series in reading order

    Example:
        shelf series show 7
        shelf series show 7 --filter missing
    """
    state = build_state(True, filter_status, sort_field, sort_order, hide_compilations, view_mode)
    show_context(app, context_key('series', series_id), state, refresh)

@series.command()
@click.argument('series_id')
@click.option('--monitored/--unmonitored', default=True, help='Monitor the added books')
@click.pass_obj
def add_missing(app, series_id: str, monitored: bool):
    """Add every book of the series that is not in the library yet

    Example:
        shelf series add-missing 7
    """
    context = load_context(app, context_key('series', series_id))
    if all(entry.in_library for entry in context.entries):
        click.echo(click.style("\nThe whole series is already in the library", fg='green'))
        return

    outcomes = run(app.controller.add_all_missing(context.entries, AddOptions(monitored=monitored)))
    OutcomeTracker(outcomes).print_results()
