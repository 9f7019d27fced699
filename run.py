# FILE: run.py

from portal import create_app, db
import click

app = create_app()

@app.shell_context_processor
def make_shell_context():
    from portal.models import (User, Role, UserModule, Module, ClassSession, Assessment, Notification,
                               NotificationRead, LabBooking, Document, ExternalRepository, FaqEntry)
    return {
        'db': db, 'User': User, 'Role': Role, 'UserModule': UserModule, 'Module': Module,
        'ClassSession': ClassSession, 'Assessment': Assessment, 'Notification': Notification,
        'NotificationRead': NotificationRead, 'LabBooking': LabBooking, 'Document': Document,
        'ExternalRepository': ExternalRepository, 'FaqEntry': FaqEntry
    }

@app.cli.command('seed')
@click.option('--dir', 'seed_dir', default=None, help='Directory holding the JSON seed files.')
def seed(seed_dir):
    """Seeds empty tables from the JSON files in SEED_DATA_DIR."""
    from portal.seed import seed_database

    click.echo("Seeding database...")
    seeded = seed_database(seed_dir)
    if seeded:
        click.echo(f"Seeded: {', '.join(seeded)}")
    else:
        click.echo("Nothing to seed.")

@app.cli.command('clean-notifications')
@click.option('--days', default=30, type=int, help='Delete notifications older than this many days.')
def clean_notifications_command(days):
    """
    Deletes old notifications from the database.
    Run with: flask --app run clean-notifications --days=60
    """
    from portal.services import clean_old_notifications

    click.echo(f"Deleting notifications older than {days} days...")
    deleted_count = clean_old_notifications(days_old=days)
    if deleted_count is not None:
        click.echo(f'Deleted {deleted_count} old notifications.')
    else:
        click.echo('The cleanup task failed. Check application logs.')
