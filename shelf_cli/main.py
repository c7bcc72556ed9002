# shelf_cli/main.py
import click
import logging
from .commands.author import author
from .commands.series import series
from .commands.search import search
from .commands.book import book
from .commands.cache import cache
from .utils import build_app

@click.group()
@click.option('--api-url', envvar='SHELF_API_URL', default=None, help='Library backend URL (default: http://localhost:8080)')
@click.option('--token', envvar='SHELF_API_TOKEN', default=None, help='Bearer token for the backend')
@click.option('--database-url', envvar='SHELF_DATABASE_URL', default=None, help='Where cached views are kept (default: sqlite:///shelf_cache.db)')
@click.option('--verbose/--no-verbose', default=False, help='Show debug logging')
@click.pass_context
def cli(ctx, api_url: str, token: str, database_url: str, verbose: bool):
    """Shelf Companion CLI"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    if ctx.obj is None:
        ctx.obj = build_app(api_url=api_url, token=token, database_url=database_url)
        ctx.call_on_close(ctx.obj.close)

cli.add_command(author)
cli.add_command(series)
cli.add_command(search)
cli.add_command(book)
cli.add_command(cache)

def main():
    """Entry point for the CLI"""
    cli()

if __name__ == '__main__':
    main()
