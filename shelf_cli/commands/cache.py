import click

@click.group()
def cache():
    """Cached catalog view commands"""
    pass

@cache.command(name='list')
@click.pass_obj
def list_contexts(app):
    """List the cached author, series and search views"""
    contexts = app.cache.contexts()
    if not contexts:
        click.echo(click.style("\nNothing cached yet", fg='yellow'))
        return

    for context in sorted(contexts, key=lambda c: c.key):
        in_library = sum(1 for entry in context.entries if entry.in_library)
        line = (click.style(f"{context.key:<30}", fg='cyan') +
                f" {len(context.entries):>4} books, {in_library:>4} in library"
                f"  fetched {context.fetched_at:%Y-%m-%d %H:%M}")
        if context.stale:
            line += click.style("  (stale)", fg='yellow')
        click.echo(line)

@cache.command()
@click.argument('key', required=False)
@click.option('--force/--no-force', default=False, help='Skip confirmation prompt')
@click.pass_obj
def clear(app, key: str, force: bool):
    """Drop one cached view, or all of them

    Example:
        shelf cache clear author:42
        shelf cache clear --force
    """
    if key:
        if app.cache.evict(key):
            click.echo(click.style(f"\nRemoved {key}", fg='green'))
        else:
            click.echo(click.style(f"\nNo cached view named {key}", fg='yellow'))
        return

    count = len(app.cache)
    if count == 0:
        click.echo(click.style("\nNothing cached yet", fg='yellow'))
        return
    if not force:
        click.confirm(f"\nRemove all {count} cached views?", abort=True)
    app.cache.clear()
    click.echo(click.style(f"\nRemoved {count} cached views", fg='green'))
