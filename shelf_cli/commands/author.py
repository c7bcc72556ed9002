import click
from shelf.models import context_key
from shelf.reconcile import AddOptions
from shelf.views import author_series_groups
from ..utils import OutcomeTracker, build_state, load_context, run, show_context, sort_filter_options

@click.group()
def author():
    """Author bibliography commands"""
    pass

@author.command()
@click.argument('author_id')
@sort_filter_options
@click.pass_obj
def show(app, author_id: str, filter_status: str, sort_field: str, sort_order: str,
         hide_compilations: bool, view_mode: str, refresh: bool):
    """Show an author's books from the catalog with their library status

    Books that belong to a series with at least two entries are also listed
    grouped by series.

    Example:
        shelf author show 42
        shelf author show 42 --filter missing --sort releaseYear --order desc
    """
    state = build_state(False, filter_status, sort_field, sort_order, hide_compilations, view_mode)
    show_context(app, context_key('author', author_id), state, refresh, grouping=author_series_groups)

@author.command()
@click.argument('author_id')
@click.option('--monitored/--unmonitored', default=True, help='Monitor the added books')
@click.option('--hide-compilations/--include-compilations', default=False, help='Skip omnibus and box set editions')
@click.pass_obj
def add_missing(app, author_id: str, monitored: bool, hide_compilations: bool):
    """Add every book by the author that is not in the library yet

    Example:
        shelf author add-missing 42
        shelf author add-missing 42 --hide-compilations
    """
    key = context_key('author', author_id)
    context = load_context(app, key)
    entries = [e for e in context.entries if not (hide_compilations and e.compilation)]

    missing = [e for e in entries if not e.in_library]
    if not missing:
        click.echo(click.style("\nEvery book by this author is already in the library", fg='green'))
        return

    click.echo(click.style(f"\nAdding {len(missing)} books", fg='blue'))
    outcomes = run(app.controller.add_all_missing(entries, AddOptions(monitored=monitored)))
    OutcomeTracker(outcomes).print_results()
