"""
cli/main.py - Balance Checker Command Line Interface

Commands:
- check:      dry-run baseline from the CU vs per-address Hyperbeam balances
- manual:     message-result or captured-file baseline vs Hyperbeam balances
- cu-compare: the same message result read from two CUs, compared directly

Exit status is 0 when every balance matches (or none were found), 1 on any
discrepancy or error.

Usage:
    balance-checker check <process-id>
    balance-checker manual <process-id> --message-id <id>
    balance-checker manual <process-id> --balances-file balances.json -o csv -f out.csv
    balance-checker cu-compare <process-id> --message-id <id> -a https://cu-a -b https://cu-b
"""

import asyncio
import functools
import logging
from typing import Optional

import click

from cli.reporter import OUTPUT_FORMATS, Reporter, RichProgressObserver
from clients.compute_unit import ComputeUnitClient
from clients.hyperbeam import HyperbeamClient
from config import ReconcilerConfig, load_config
from core.logging_config import setup_logging
from reconciliation.baseline import (
    BaselineSource,
    DryRunBaselineSource,
    FileBaselineSource,
    MessageResultBaselineSource,
)
from reconciliation.models import ComparisonReport, FailurePolicy
from reconciliation.processor import BalanceProcessor, TwoSourceProcessor

VERSION = "1.0.0"

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_DISCREPANCY = 1
EXIT_ERROR = 1


def async_command(f):
    """Run an async command and exit with the status code it returns."""

    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        exit_code = asyncio.run(f(*args, **kwargs))
        click.get_current_context().exit(exit_code or EXIT_OK)
    return wrapper


def output_options(f):
    f = click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')(f)
    f = click.option('--debug-log', type=click.Path(dir_okay=False), default=None,
                     help='Write a verbose debug log to this file')(f)
    f = click.option('-f', '--file', 'output_file', type=click.Path(dir_okay=False), default=None,
                     help='Output file path (for json/csv formats)')(f)
    f = click.option('-o', '--output', 'output_format', default='console', show_default=True,
                     type=click.Choice(OUTPUT_FORMATS, case_sensitive=False),
                     help='Output format')(f)
    return f


def fetch_options(f):
    f = click.option('--on-fetch-failure', 'failure_policy', default=FailurePolicy.ZERO.value,
                     show_default=True,
                     type=click.Choice([p.value for p in FailurePolicy]),
                     help='Treat an unfetchable counterpart balance as zero, or report it as unknown')(f)
    f = click.option('--no-progress', is_flag=True, help='Disable progress bar')(f)
    f = click.option('-c', '--concurrency', type=int, default=None,
                     help='Number of concurrent requests (1-100)')(f)
    return f


@click.group()
@click.version_option(version=VERSION, prog_name="balance-checker")
def cli():
    """Validate AO process balances against the Hyperbeam state-compute API."""
    pass


# ============================================================================
# Helpers
# ============================================================================

def _prepare(
    reporter: Reporter,
    verbose: bool,
    debug_log: Optional[str],
    output_format: str,
    output_file: Optional[str],
    concurrency: Optional[int] = None,
) -> ReconcilerConfig:
    setup_logging(verbose=verbose, debug_log_file=debug_log)
    if verbose:
        reporter.print_info("Loading configuration...")

    config = load_config(concurrency=concurrency)

    if verbose:
        reporter.print_info(f"Using CU_URL: {config.cu_url}")
        reporter.print_info(f"Using Hyperbeam: {config.hyperbeam_base_url}")
        reporter.print_info(f"Concurrency: {config.concurrency}")

    if output_format != 'console' and not output_file:
        reporter.print_warning('No output file specified. Using default filename.')
    return config


def _report_error(reporter: Reporter, error: BaseException, verbose: bool) -> int:
    reporter.print_error(error)
    if verbose:
        reporter.err_console.print_exception()
    logger.debug(f"Run failed: {error!r}")
    return EXIT_ERROR


def _finish(reporter: Reporter, report: ComparisonReport, output_format: str,
            output_file: Optional[str]) -> int:
    if report.total_addresses == 0 and report.unknown_count == 0:
        reporter.print_warning('No balances found for this process.')
        return EXIT_OK

    reporter.generate_report(report, output_format, output_file)

    if report.has_discrepancies:
        return EXIT_DISCREPANCY
    if output_format == 'console':
        reporter.print_success('Balance check completed successfully!')
    return EXIT_OK


async def _reconcile(
    config: ReconcilerConfig,
    process_id: str,
    baseline: BaselineSource,
    failure_policy: str,
    show_progress: bool,
) -> ComparisonReport:
    observer = RichProgressObserver() if show_progress else None
    processor = BalanceProcessor(
        config,
        counterpart_factory=lambda pid: HyperbeamClient(config, pid),
        failure_policy=FailurePolicy(failure_policy),
        observer=observer,
    )
    return await processor.run(process_id, baseline)


# ============================================================================
# Commands
# ============================================================================

@cli.command()
@click.argument('process_id')
@fetch_options
@output_options
@async_command
async def check(process_id: str, concurrency: Optional[int], no_progress: bool, failure_policy: str,
                output_format: str, output_file: Optional[str], debug_log: Optional[str], verbose: bool):
    """Check every balance of PROCESS_ID (live dry run) against Hyperbeam."""
    reporter = Reporter()
    output_format = output_format.lower()
    try:
        config = _prepare(reporter, verbose, debug_log, output_format, output_file, concurrency)
        if verbose:
            reporter.print_info(f"Processing balances for process: {process_id}")

        async with ComputeUnitClient(config) as cu:
            report = await _reconcile(
                config, process_id, DryRunBaselineSource(cu), failure_policy, not no_progress
            )
        return _finish(reporter, report, output_format, output_file)
    except Exception as e:
        return _report_error(reporter, e, verbose)


@cli.command()
@click.argument('process_id')
@click.option('-m', '--message-id', default=None, help='ID of an already-sent Balances message')
@click.option('-b', '--balances-file', type=click.Path(dir_okay=False), default=None,
              help='JSON file with a previously captured balance table')
@fetch_options
@output_options
@async_command
async def manual(process_id: str, message_id: Optional[str], balances_file: Optional[str],
                 concurrency: Optional[int], no_progress: bool, failure_policy: str,
                 output_format: str, output_file: Optional[str], debug_log: Optional[str], verbose: bool):
    """Check PROCESS_ID balances from a message result or a saved file against Hyperbeam."""
    reporter = Reporter()
    output_format = output_format.lower()

    if bool(message_id) == bool(balances_file):
        reporter.print_error(click.UsageError('Provide exactly one of --message-id or --balances-file.'))
        return EXIT_ERROR

    try:
        config = _prepare(reporter, verbose, debug_log, output_format, output_file, concurrency)

        if balances_file:
            if verbose:
                reporter.print_info(f"Loading balances from file: {balances_file}")
            report = await _reconcile(
                config, process_id, FileBaselineSource(balances_file), failure_policy, not no_progress
            )
        else:
            if verbose:
                reporter.print_info(f"Reading result of message: {message_id}")
            async with ComputeUnitClient(config) as cu:
                report = await _reconcile(
                    config, process_id, MessageResultBaselineSource(cu, message_id),
                    failure_policy, not no_progress,
                )
        return _finish(reporter, report, output_format, output_file)
    except Exception as e:
        return _report_error(reporter, e, verbose)


@cli.command('cu-compare')
@click.argument('process_id')
@click.option('-m', '--message-id', required=True, help='ID of the Balances message to read from both CUs')
@click.option('-a', '--cu-a', 'cu_a', default=None, help='First CU URL (default: CU_URL_A)')
@click.option('-b', '--cu-b', 'cu_b', default=None, help='Second CU URL (default: CU_URL_B)')
@output_options
@async_command
async def cu_compare(process_id: str, message_id: str, cu_a: Optional[str], cu_b: Optional[str],
                     output_format: str, output_file: Optional[str], debug_log: Optional[str], verbose: bool):
    """Compare PROCESS_ID balances between two CUs for the same message."""
    reporter = Reporter()
    output_format = output_format.lower()
    try:
        config = _prepare(reporter, verbose, debug_log, output_format, output_file)
        config = config.with_overrides(cu_url_a=cu_a, cu_url_b=cu_b)

        if verbose:
            reporter.print_info(f"CU A: {config.cu_url_a}")
            reporter.print_info(f"CU B: {config.cu_url_b}")
            reporter.print_info(f"Message ID: {message_id}")

        reporter.err_console.print("[cyan]Fetching balance data from CUs...[/cyan]")
        async with ComputeUnitClient(config, config.cu_url_a) as client_a, \
                ComputeUnitClient(config, config.cu_url_b) as client_b:
            report = await TwoSourceProcessor(client_a, client_b).run(process_id, message_id)

        reporter.generate_two_source_report(report, output_format, output_file)

        if report.has_discrepancies:
            return EXIT_DISCREPANCY
        if output_format == 'console':
            reporter.print_success('CU comparison completed - all balances match!')
        return EXIT_OK
    except Exception as e:
        return _report_error(reporter, e, verbose)


# ============================================================================
# Main Entry Point
# ============================================================================

def main():
    """Main entry point."""
    cli()


if __name__ == '__main__':
    main()
