"""
Command Line Interface

Operational commands for the facet index: schema management, reindexing
and statistics.
"""

import sys
import json
import click

from .config import Config
from .engine import FacetEngine
from .exceptions import IndexSchemaError
from .query import FacetQuery
from .utils import ProgressTracker


CLI_JOB_ID = 'facets_cli_index'


def _engine(ctx) -> FacetEngine:
    if 'engine' not in ctx.obj:
        ctx.obj['engine'] = FacetEngine(ctx.obj['config'])
    return ctx.obj['engine']


def _fail(message: str):
    click.echo(f"❌ {message}", err=True)
    sys.exit(1)


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--env-file', type=click.Path(dir_okay=False), help='Load settings from this .env file')
@click.option('--database', help='Override DATABASE_PATH')
@click.pass_context
def cli(ctx, verbose, env_file, database):
    """facetkit - faceted index and query engine"""
    config = Config(env_file)
    if database:
        config.database_path = database
    if verbose:
        config.log_level = 'DEBUG'
    config.setup_logging()

    ctx.ensure_object(dict)
    ctx.obj['config'] = config


@cli.command()
@click.option('--force', is_flag=True, help='Run the schema statements even if the table exists')
@click.pass_context
def create(ctx, force):
    """Create the facet index table."""
    engine = _engine(ctx)

    try:
        created = engine.index.create(force=force)
    except IndexSchemaError as e:
        _fail(str(e))

    if not created:
        _fail("Error creating index")

    click.echo(f"✅ Index table created: {engine.index.table}")


@cli.command()
@click.pass_context
def delete(ctx):
    """Drop the facet index table."""
    engine = _engine(ctx)
    engine.index.drop()

    if engine.index.exists():
        _fail("Error deleting index")

    click.echo("✅ Index deleted")


@cli.command()
@click.pass_context
def truncate(ctx):
    """Remove every row from the facet index."""
    engine = _engine(ctx)

    if not engine.index.truncate():
        _fail("Error truncating index")

    click.echo("✅ Index truncated")


@cli.command()
@click.argument('ids', nargs=-1, type=int)
@click.option('--kind', 'kinds', multiple=True, help='Only index objects of this kind (repeatable)')
@click.option('--batch', default=None, type=int, help='Objects per page')
@click.option('--progress', type=click.Choice(['bar', 'log', 'none']), default='bar',
              help='How to report progress')
@click.pass_context
def index(ctx, ids, kinds, batch, progress):
    """Index every object, or only the given object IDS."""
    engine = _engine(ctx)

    if not engine.index.exists():
        _fail(f"Facet index table '{engine.index.table}' does not exist, run create first")

    indexer = engine.batch_indexer(
        job_id=CLI_JOB_ID,
        per_page=batch,
        kinds=list(kinds) or None,
        object_ids=list(ids) if ids else None,
    )

    try:
        with ProgressTracker(desc="Indexing", disable=progress != 'bar') as tracker:
            result = indexer.start()
            tracker.set_total(result['total'])

            while True:
                tracker.update(result['indexed'] + result['errors'],
                               changed=result['changed'], errors=result['errors'])
                if progress == 'log':
                    click.echo(f"Indexed page {result['page']}/{result['max_page']} "
                               f"({result['indexed']} objects, {result['errors']} errors)")
                if result['complete']:
                    break
                result = indexer.next()

            stats = tracker.get_stats()
    except IndexSchemaError as e:
        _fail(str(e))

    if progress != 'none':
        click.echo(f"✅ Indexing complete in {stats.get('elapsed_seconds', 0):.2f} seconds: "
                   f"{stats['processed']} objects, {stats['changed']} changed, "
                   f"{stats['errors']} errors")


@cli.command()
@click.option('--batch', default=None, type=int, help='Objects per page')
@click.pass_context
def step(ctx, batch):
    """Run one page of the resumable background rebuild and print its result."""
    engine = _engine(ctx)
    indexer = engine.batch_indexer(per_page=batch)

    try:
        result = indexer.next() if indexer.active() else indexer.start()
    except IndexSchemaError as e:
        _fail(str(e))

    click.echo(json.dumps(result, indent=2))


@cli.command()
@click.option('--format', 'output_format', type=click.Choice(['table', 'json']), default='table')
@click.pass_context
def stats(ctx, output_format):
    """Show facet index statistics."""
    engine = _engine(ctx)
    result = engine.index.stats()
    result['index_required'] = engine.batch_indexer().index_required()

    if output_format == 'json':
        click.echo(json.dumps(result, indent=2))
        return

    click.echo("📊 Facet Index Status:")
    click.echo(f"   Table: {engine.index.table}")
    click.echo(f"   Exists: {result['exists']}")
    click.echo(f"   Total rows: {result['total']:,}")
    click.echo(f"   Facets: {', '.join(result['facets']) or '-'}")
    click.echo(f"   Reindex required: {result['index_required']}")


@cli.command()
@click.option('--counts', is_flag=True, help='Also show value counts across all objects')
@click.pass_context
def facets(ctx, counts):
    """List the enabled facets."""
    engine = _engine(ctx)
    enabled = engine.provider.get_facet_definitions()

    if not enabled:
        click.echo("No facets enabled.")
        return

    facet_set = engine.apply(FacetQuery()) if counts else None

    for definition in enabled:
        click.echo(f"{definition.label} ({definition.key}) - {definition.kind}")
        if facet_set is None or definition.key not in facet_set:
            continue
        for value in facet_set[definition.key]:
            click.echo(f"   {value.label}: {value.count}")


if __name__ == '__main__':
    cli()
