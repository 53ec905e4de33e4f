import json
import click
import logging

from .config.config_loader import ConfigLoader
from .connectivity.monitor import ConnectivityMonitor, ReachabilityProbe
from .logging_config import setup_logging
from .remote.rest_client import RestRemoteAPI
from .storage.sqlite_cache import SQLiteRecordCache
from .storage.sqlite_queue import SQLiteOperationQueue
from .sync.coordinator import SyncCoordinator
from .sync.service import SyncService

logger = logging.getLogger(__name__)

def _load_config(config_path):
    loader = ConfigLoader(config_path)
    loader.load()
    loader.update_from_env()
    setup_logging(loader.config)
    return loader

def build_coordinator(loader: ConfigLoader, remote=None) -> SyncCoordinator:
    """Wire cache, queue, monitor and remote together from a loaded config"""
    cfg = loader.config
    db_path = cfg['storage']['path']
    monitor = ConnectivityMonitor(
        initially_online=cfg['connectivity'].get('start_online', True)
    )
    return SyncCoordinator(
        cache=SQLiteRecordCache(db_path),
        queue=SQLiteOperationQueue(db_path),
        monitor=monitor,
        remote=remote or RestRemoteAPI(loader.remote_config()),
        schemas=loader.collection_schemas(),
        config=loader.sync_config()
    )

def _probe(loader: ConfigLoader) -> ReachabilityProbe:
    host, port = loader.probe_address()
    return ReachabilityProbe(host, port, timeout=loader.config['connectivity'].get('probe_timeout', 3))

@click.group()
@click.option('--config', '-c', type=click.Path(exists=True),
              help='Path to configuration file')
@click.pass_context
def cli(ctx, config):
    """TalebEdu offline sync"""
    ctx.ensure_object(dict)
    try:
        loader = _load_config(config)
        ctx.obj['loader'] = loader
        if 'coordinator' not in ctx.obj:
            ctx.obj['coordinator'] = build_coordinator(loader)
    except Exception as e:
        raise click.ClickException(str(e))

@cli.command()
@click.pass_obj
def status(obj):
    """Show connectivity and queue state"""
    for key, value in obj['coordinator'].status().items():
        click.echo(f"{key}: {value}")

@cli.command()
@click.pass_obj
def pending(obj):
    """List operations waiting to be synced"""
    operations = obj['coordinator'].queue.list_pending()
    if not operations:
        click.echo("No pending changes")
        return
    for op in operations:
        click.echo(
            f"{op.created_at.isoformat()}  {op.operation.value:<6}  "
            f"{op.collection}/{op.payload.get('id')}  attempts={op.attempts}"
        )

@cli.command()
@click.pass_obj
def failed(obj):
    """List dead-lettered operations"""
    operations = obj['coordinator'].queue.list_failed()
    if not operations:
        click.echo("No failed changes")
        return
    for op in operations:
        click.echo(
            f"{op.id}  {op.operation.value:<6}  {op.collection}/{op.payload.get('id')}  "
            f"{op.last_error}"
        )

@cli.command()
@click.pass_obj
def requeue(obj):
    """Move dead-lettered operations back to the pending queue"""
    count = obj['coordinator'].queue.requeue_failed()
    click.echo(f"Requeued {count} operations")

@cli.command()
@click.option('--no-probe', is_flag=True, help='Trust the configured online state')
@click.pass_obj
def sync(obj, no_probe):
    """Replay pending operations once"""
    coordinator = obj['coordinator']
    if not no_probe:
        _probe(obj['loader']).feed(coordinator.monitor)
    try:
        result = coordinator.replay_pending()
    except Exception as e:
        raise click.ClickException(str(e))
    if result is None:
        click.echo("Offline, nothing synced")
        return
    click.echo(
        f"Synced: {result.records_synced}  Failed: {result.records_failed}  "
        f"Dead-lettered: {result.records_dead_lettered}  Status: {result.status}"
    )

@cli.command()
@click.pass_obj
def purge(obj):
    """Remove operations that were already synced"""
    click.echo(f"Purged {obj['coordinator'].purge_synced()} operations")

@cli.command()
@click.argument('collection')
@click.option('--offline', is_flag=True, help='Read from the local cache only')
@click.option('--hide-deleted', is_flag=True, help='Skip tombstoned records')
@click.pass_obj
def fetch(obj, collection, offline, hide_deleted):
    """Print a collection as JSON lines"""
    coordinator = obj['coordinator']
    if offline:
        coordinator.monitor.set_offline()
    try:
        records = coordinator.fetch(collection, include_deleted=not hide_deleted)
    except ValueError as e:
        raise click.ClickException(str(e))
    for record in records:
        click.echo(json.dumps(record, default=str))

@cli.command()
@click.pass_obj
def run(obj):
    """Run the continuous sync service"""
    service = SyncService(obj['coordinator'])
    service.start_sync_service(probe=_probe(obj['loader']))

def main():
    cli(obj={})

if __name__ == '__main__':
    main()
