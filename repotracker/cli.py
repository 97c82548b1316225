import sys
from functools import wraps
from typing import Callable, Optional

import click

from common.logging import LoggingManager
from repotracker.config import get_config
from repotracker.errors import TrackerError
from repotracker.github.summary import RepositoryFilters
from repotracker.projects.service import ProjectService, SyncReport, create_service

logger = LoggingManager.get_logger('app.cli')

# Exit code when GitHub's rate limit stops a command, distinct from other failures
RATE_LIMIT_EXIT_CODE = 2

HEALTH_LABELS = {
    'on-track': 'OK ',
    'at-risk': '!! ',
    'delayed': 'XX ',
    'unknown': '?? ',
}


def handle_errors(func: Callable) -> Callable:
    """Report TrackerErrors as `Error [kind]: message` and exit non-zero."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except TrackerError as e:
            logger.error(f"Command failed [{e.kind}]: {e.message}")
            click.echo(f"Error [{e.kind}]: {e.message}", err=True)
            sys.exit(RATE_LIMIT_EXIT_CODE if e.kind == 'rate_limited' else 1)
    return wrapper


def filter_options(func: Callable) -> Callable:
    """Repository filter flags shared by fetch and sync."""
    func = click.option('--exclude-archived', is_flag=True, help='Skip archived repositories')(func)
    func = click.option('--only-public', is_flag=True, help='Skip private repositories')(func)
    func = click.option('--exclude-forks', is_flag=True, help='Skip forked repositories')(func)
    func = click.option('--min-stars', type=int, default=None, help='Minimum number of stars')(func)
    func = click.option('--language', default=None, help='Primary language (case-insensitive)')(func)
    return func


def build_filters(language: Optional[str], min_stars: Optional[int], exclude_forks: bool,
                  only_public: bool, exclude_archived: bool) -> RepositoryFilters:
    return RepositoryFilters(language=language, min_stars=min_stars, exclude_forks=exclude_forks,
                             only_public=only_public, exclude_archived=exclude_archived)


def _service(ctx: click.Context) -> ProjectService:
    if ctx.obj.get('service') is None:
        ctx.obj['service'] = create_service(ctx.obj['config'])
    return ctx.obj['service']


def _echo_sync_report(report: SyncReport) -> None:
    if report.fetched == 0:
        click.echo(f"No repositories found for GitHub user {report.username}.")
        return
    click.echo(f"Synced {report.synced_count} of {report.fetched} repositories for {report.username}.")
    for project in report.projects:
        click.echo(f"  + {project['full_name']} ({project['health_status']})")
    if report.errors:
        click.echo(f"{report.failed_count} repositories failed:", err=True)
        for error in report.errors:
            click.echo(f"  - {error.repo}: [{error.kind}] {error.error}", err=True)
    if report.all_failed:
        sys.exit(1)


# --- Click Command Group ---
@click.group()
@click.pass_context
def cli(ctx):
    """GitHub project tracker CLI"""
    config = get_config()
    LoggingManager.for_application(log_level=config.log_level, log_dir=config.log_dir)
    ctx.ensure_object(dict)
    ctx.obj.setdefault('config', config)
    ctx.obj.setdefault('service', None)


@cli.command('fetch')
@click.argument('username')
@filter_options
@click.pass_context
@handle_errors
def fetch(ctx, username: str, language: Optional[str], min_stars: Optional[int], exclude_forks: bool,
          only_public: bool, exclude_archived: bool) -> None:
    """List a GitHub user's repositories live, without saving them."""
    filters = build_filters(language, min_stars, exclude_forks, only_public, exclude_archived)
    result = _service(ctx).fetch_live(username, filters)
    click.echo(f"Found {result.count} repositories for {result.username}")
    for repo in result.repositories:
        pushed = repo.pushed_at.strftime('%Y-%m-%d') if repo.pushed_at else 'never'
        flags = ''.join([' [fork]' if repo.is_fork else '', ' [archived]' if repo.archived else '',
                         ' [private]' if repo.is_private else ''])
        click.echo(f"  {repo.full_name:<40} {repo.stars:>6} stars  {repo.language:<12} pushed {pushed}{flags}")


@cli.command('sync')
@click.argument('username')
@click.option('--user-id', required=True, help='Owning user id to record projects under')
@filter_options
@click.pass_context
@handle_errors
def sync(ctx, username: str, user_id: str, language: Optional[str], min_stars: Optional[int],
         exclude_forks: bool, only_public: bool, exclude_archived: bool) -> None:
    """Fetch a GitHub user's repositories and save them as tracked projects."""
    filters = build_filters(language, min_stars, exclude_forks, only_public, exclude_archived)
    logger.info(f"Syncing GitHub repositories of {username} for user {user_id}")
    _echo_sync_report(_service(ctx).sync(user_id, username, filters))


@cli.command('resync')
@click.option('--user-id', required=True, help='Owning user id')
@click.pass_context
@handle_errors
def resync(ctx, user_id: str) -> None:
    """Sync again with the GitHub username stored by the last sync."""
    _echo_sync_report(_service(ctx).resync(user_id))


@cli.command('list')
@click.option('--user-id', required=True, help='Owning user id')
@click.option('--status', type=click.Choice(['planning', 'in-progress', 'completed', 'archived']), default=None)
@click.option('--starred', is_flag=True, help='Only starred projects')
@click.pass_context
@handle_errors
def list_projects(ctx, user_id: str, status: Optional[str], starred: bool) -> None:
    """List tracked projects."""
    projects = _service(ctx).list_projects(user_id, status=status, starred=True if starred else None)
    if not projects:
        click.echo("No tracked projects.")
        return
    for project in projects:
        star = '*' if project['starred'] else ' '
        click.echo(f"{star} #{project['id']:<4} {project['full_name']:<40} {project['status']:<12} "
                   f"{project['progress']:>3}%")


@cli.command('health')
@click.option('--user-id', required=True, help='Owning user id')
@click.pass_context
@handle_errors
def health(ctx, user_id: str) -> None:
    """Show freshness of each tracked project, based on its last push."""
    projects = _service(ctx).list_projects(user_id)
    counts = {label: 0 for label in HEALTH_LABELS}
    for project in projects:
        counts[project['health_status']] += 1
        days = project['days_since_last_push']
        click.echo(f"{HEALTH_LABELS[project['health_status']]}{project['name']:<30} "
                   f"{project['health_status']:<9} score {project['health_score']:>3}/100  "
                   f"last push {days if days is not None else 'N/A'} days ago")
    click.echo(f"On track: {counts['on-track']}  At risk: {counts['at-risk']}  "
               f"Delayed: {counts['delayed']}  Unknown: {counts['unknown']}  Total: {len(projects)}")


@cli.command('stats')
@click.option('--user-id', required=True, help='Owning user id')
@click.pass_context
@handle_errors
def stats(ctx, user_id: str) -> None:
    """Summarize tracked projects by status."""
    data = _service(ctx).project_stats(user_id)
    click.echo(f"Total: {data['total']}")
    click.echo(f"Planning: {data['planning']}  In progress: {data['in_progress']}  "
               f"Completed: {data['completed']}  Archived: {data['archived']}")
    click.echo(f"Starred: {data['starred']}  Average progress: {data['avg_progress']}%")
    health = data['health']
    click.echo(f"On track: {health['on-track']}  At risk: {health['at-risk']}  "
               f"Delayed: {health['delayed']}  Unknown: {health['unknown']}")


@cli.command('rate-limit')
@click.pass_context
@handle_errors
def rate_limit(ctx) -> None:
    """Show the remaining GitHub API quota."""
    info = _service(ctx).github.get_rate_limit()
    reset = info['reset_time'].strftime('%Y-%m-%d %H:%M:%S UTC') if info['reset_time'] else 'unknown'
    click.echo(f"GitHub API: {info['remaining']}/{info['limit']} requests remaining, resets at {reset}")


if __name__ == '__main__':
    cli()
