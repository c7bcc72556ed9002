import click
from shelf.models import context_key
from ..utils import build_state, show_context, sort_filter_options

@click.command()
@click.argument('query')
@sort_filter_options
@click.pass_obj
def search(app, query: str, filter_status: str, sort_field: str, sort_order: str,
           hide_compilations: bool, view_mode: str, refresh: bool):
    """Search the catalog for books

    Example:
        shelf search dune
        shelf search "the expanse" --filter notInLibrary --view list
    """
    state = build_state(False, filter_status, sort_field, sort_order, hide_compilations, view_mode)
    show_context(app, context_key('search', query), state, refresh)
