"""
sqs-consumer queue - Inspect and feed queues.

Usage:
  sqs-consumer queue stats --queue-url <url>
  sqs-consumer queue send --queue-url <url> --body '{"hello": "world"}' --count 10
"""

import os
import sys
from datetime import datetime

import click
from rich.console import Console
from rich.table import Table

console = Console()


def get_sqs_client(region=None):
    """Get SQS client, region from flag, SQS_CONSUMER_REGION, or boto3 defaults."""
    from sqs_consumer.io.sqs import SQSClient

    # None falls through to the boto3 default chain, like the consume command
    return SQSClient(region or os.environ.get('SQS_CONSUMER_REGION'))


@click.group()
def queue():
    """Inspect and feed queues (stats, send)."""
    pass


@queue.command()
@click.option('--queue-url', required=True, help='SQS queue URL')
@click.option('--region', help='AWS region (default: SQS_CONSUMER_REGION, then AWS_DEFAULT_REGION or ~/.aws/config)')
def stats(queue_url, region):
    """Show queue statistics."""
    sqs = get_sqs_client(region)

    try:
        stats_data = sqs.queue_stats(queue_url)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    table = Table(title=f"Queue Stats: {queue_url}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Messages Available", str(stats_data['approximate_messages']))
    table.add_row("Messages In Flight", str(stats_data['approximate_messages_not_visible']))
    table.add_row("Messages Delayed", str(stats_data['approximate_messages_delayed']))

    created = datetime.fromtimestamp(stats_data['created_timestamp'])
    modified = datetime.fromtimestamp(stats_data['last_modified_timestamp'])

    table.add_row("Created", created.strftime('%Y-%m-%d %H:%M:%S'))
    table.add_row("Last Modified", modified.strftime('%Y-%m-%d %H:%M:%S'))

    console.print(table)


@queue.command()
@click.option('--queue-url', required=True, help='SQS queue URL')
@click.option('--body', required=True, help='Message body')
@click.option('-n', '--count', type=int, default=1, show_default=True, help='Number of copies to send')
@click.option('--region', help='AWS region (default: SQS_CONSUMER_REGION, then AWS_DEFAULT_REGION or ~/.aws/config)')
def send(queue_url, body, count, region):
    """Send test messages to a queue."""
    if count <= 0:
        console.print("[red]Error:[/red] Count must be a positive integer")
        sys.exit(1)

    sqs = get_sqs_client(region)

    sent = 0
    try:
        for _ in range(count):
            sqs.send(queue_url, body)
            sent += 1
    except Exception as e:
        console.print(f"[red]Error:[/red] {e} (sent {sent} before failing)")
        sys.exit(1)

    console.print(f"[green]✓[/green] Sent {sent} message(s)")
