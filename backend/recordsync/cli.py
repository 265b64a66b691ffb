"""
Command line interface
Runs the sync API, prepares the remote store and drives the client sync queue
"""

import sys
import json
import asyncio
import argparse
import logging
from dataclasses import asdict

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def serve_command():
    """Run the sync API with uvicorn."""
    from .main import main as run_server
    run_server()


def init_db_command():
    """Create the remote store tables and indexes."""
    from .init_db import init_sync_tables
    init_sync_tables()
    print("Sync tables are up to date.")


def issue_token_command(user_id: str, minutes: int = None):
    """Print a bearer token for a user (development helper)."""
    from datetime import timedelta
    from .core.security import auth_manager

    expires = timedelta(minutes=minutes) if minutes else None
    print(auth_manager.issue_for_user(user_id, expires_delta=expires))


def _client_service():
    from .services.cloud_sync.service import CloudSyncService

    service = CloudSyncService(auto_start=False)
    if not service.is_configured():
        print("Set SYNC_SERVER_URL and SYNC_AUTH_TOKEN to talk to a sync server.")
        sys.exit(2)
    return service


def _print_result(title: str, result):
    print(f"\n{title}")
    print("=" * 60)
    print(json.dumps(asdict(result), indent=2, default=str))


def push_command(force: bool = False):
    """Drain the local sync queue."""
    orchestrator = _client_service().orchestrator
    if force:
        result = asyncio.run(orchestrator.force_push_all())
    else:
        result = asyncio.run(orchestrator.push_all())
    _print_result("Push", result)
    return 1 if result.aborted else 0


def pull_command(if_changed: bool = False):
    """Fetch the server snapshot and merge it locally."""
    orchestrator = _client_service().orchestrator
    if if_changed:
        result = asyncio.run(orchestrator.pull_if_changed())
    else:
        result = asyncio.run(orchestrator.pull_all())
    _print_result("Pull", result)
    return 1 if result.error else 0


def sync_command():
    """Push then pull."""
    result = asyncio.run(_client_service().orchestrator.full_sync())
    _print_result("Full sync", result)
    return 1 if result.push.aborted or result.pull.error else 0


def retry_dead_command():
    """Requeue dead-lettered items and drain again."""
    result = asyncio.run(_client_service().orchestrator.retry_dead_letters())
    _print_result("Retry dead letters", result)
    return 0


def status_command(verbose: bool = False):
    """Show queue length, last push/pull and per-item errors."""
    from .services.cloud_sync.service import CloudSyncService

    service = CloudSyncService(auto_start=False)
    diagnostics = service.orchestrator.diagnostics()
    status = diagnostics["status"]

    print("\nSync Status")
    print("=" * 60)
    print(f"Pending items: {status['pending_count']}")
    print(f"Dead letters:  {status['dead_count']}")
    print(f"Last push:     {status['last_push_at'] or 'never'}")
    print(f"Last pull:     {status['last_pull_at'] or 'never'}")

    items = diagnostics["items"]
    if verbose and items:
        print("\nQueued items:")
        for item in items:
            line = (f"  #{item['id']} {item['operation']} {item['entityType']}/{item['entityId']} "
                    f"[{item['status']}, retries={item['retryCount']}]")
            if item["lastError"]:
                line += f" {item['lastError']}"
            print(line)
    return 0


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(prog="recordsync", description="Record sync server and client")
    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    subparsers.add_parser('serve', help='Run the sync API')
    subparsers.add_parser('init-db', help='Create remote store tables')

    token_parser = subparsers.add_parser('issue-token', help='Issue a bearer token for a user')
    token_parser.add_argument('user_id', help='Subject of the token')
    token_parser.add_argument('--minutes', type=int, default=None,
                              help='Lifetime in minutes (default ACCESS_TOKEN_EXPIRE_MINUTES)')

    push_parser = subparsers.add_parser('push', help='Drain the local sync queue')
    push_parser.add_argument('--force', action='store_true',
                             help='Queue every local entity as a create before pushing')

    pull_parser = subparsers.add_parser('pull', help='Merge the server snapshot locally')
    pull_parser.add_argument('--if-changed', action='store_true',
                             help='Skip the pull when server counts are unchanged')

    subparsers.add_parser('sync', help='Push then pull')
    subparsers.add_parser('retry-dead', help='Requeue dead-lettered items and push')

    status_parser = subparsers.add_parser('status', help='Show local sync status')
    status_parser.add_argument('-v', '--verbose', action='store_true',
                               help='List every queued item')

    args = parser.parse_args(argv)

    if args.command == 'serve':
        serve_command()
    elif args.command == 'init-db':
        init_db_command()
    elif args.command == 'issue-token':
        issue_token_command(args.user_id, args.minutes)
    elif args.command == 'push':
        return push_command(force=args.force)
    elif args.command == 'pull':
        return pull_command(if_changed=args.if_changed)
    elif args.command == 'sync':
        return sync_command()
    elif args.command == 'retry-dead':
        return retry_dead_command()
    elif args.command == 'status':
        return status_command(verbose=args.verbose)
    else:
        parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
