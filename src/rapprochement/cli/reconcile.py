#!/usr/bin/env python3
"""
Reconcile CLI - Bank/Invoice Reconciliation Commands

Command-line interface for importing a tenant's records, running the
auto-match engine and reviewing its matches and anomalies.
"""

from datetime import datetime
from pathlib import Path

import click

from ..anomalies.models import AnomalySeverity, AnomalyStatus
from ..core.config import ASSIGNMENT_STRATEGIES, MatchingConfig, get_config, get_tenants_dir
from ..core.exceptions import ReconciliationError
from ..core.json_utils import format_json, write_json
from ..matching import InvoiceMatcher, load_invoices, load_transactions
from ..reconciliation import (
    AutoMatchOrchestrator,
    JsonReconciliationStore,
    MatchStatus,
    compute_reconciliation_stats,
    confirm_match,
    create_manual_match,
    reject_match,
    summarize_anomalies,
    update_anomaly_status,
)

# Failures reported to the user as a clean error message
_USER_ERRORS = (KeyError, ValueError, FileNotFoundError, ReconciliationError)


def _store() -> JsonReconciliationStore:
    return JsonReconciliationStore(get_tenants_dir())


def _matching_config(strategy: str | None) -> MatchingConfig:
    return get_config().matching.with_overrides(assignment_strategy=strategy)


def _is_verbose(ctx: click.Context, verbose: bool) -> bool:
    return verbose or bool((ctx.obj or {}).get("verbose", False))


def _error_message(error: Exception) -> str:
    # KeyError wraps its message in quotes
    if isinstance(error, KeyError) and error.args:
        return str(error.args[0])
    return str(error)


@click.group()
def reconcile() -> None:
    """Bank transaction and invoice reconciliation commands."""
    pass


@reconcile.command(name="import")
@click.option("--tenant", required=True, help="Tenant identifier")
@click.option("--transactions", "transactions_file", type=click.Path(), help="Bank transactions (CSV or JSON)")
@click.option("--invoices", "invoices_file", type=click.Path(), help="Invoices (CSV or JSON)")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def import_records(
    ctx: click.Context,
    tenant: str,
    transactions_file: str | None,
    invoices_file: str | None,
    verbose: bool,
) -> None:
    """
    Import bank transactions and/or invoices for a tenant.

    Each import replaces the tenant's previous set of that kind.

    Examples:
      rapprochement reconcile import --tenant acme --transactions releve.csv
      rapprochement reconcile import --tenant acme --invoices factures.json
    """
    if not transactions_file and not invoices_file:
        raise click.UsageError("Provide --transactions and/or --invoices")

    store = _store()

    try:
        if transactions_file:
            transactions = load_transactions(transactions_file)
            store.save_transactions(tenant, transactions)
            click.echo(f"✅ Imported {len(transactions)} transactions for {tenant}")

        if invoices_file:
            invoices = load_invoices(invoices_file)
            store.save_invoices(tenant, invoices)
            click.echo(f"✅ Imported {len(invoices)} invoices for {tenant}")

    except _USER_ERRORS as e:
        raise click.ClickException(_error_message(e)) from e

    if _is_verbose(ctx, verbose):
        click.echo(f"Store: {store.tenant_dir(tenant)}")


@reconcile.command()
@click.option("--tenant", required=True, help="Tenant identifier")
@click.option("--strategy", type=click.Choice(ASSIGNMENT_STRATEGIES), help="Override assignment strategy")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def run(ctx: click.Context, tenant: str, strategy: str | None, verbose: bool) -> None:
    """
    Run auto-matching and anomaly detection for a tenant.

    Example:
      rapprochement reconcile run --tenant acme
    """
    matching = _matching_config(strategy)

    if _is_verbose(ctx, verbose):
        click.echo("Auto-Match Run")
        click.echo(f"Tenant: {tenant}")
        click.echo(f"Strategy: {matching.assignment_strategy}")
        click.echo(f"Thresholds: suggestion {matching.suggestion_threshold}, auto {matching.auto_threshold}")
        click.echo()

    try:
        result = AutoMatchOrchestrator(_store(), matching).run(tenant)
    except _USER_ERRORS as e:
        raise click.ClickException(_error_message(e)) from e

    click.echo(f"✅ Reconciliation complete for {tenant}")
    click.echo(f"   Auto matches: {result.auto_matched}")
    click.echo(f"   Suggestions: {result.suggestions}")
    click.echo(f"   Anomalies: {result.anomalies}")


@reconcile.command()
@click.option("--transactions", "transactions_file", required=True, type=click.Path(), help="Bank transactions")
@click.option("--invoices", "invoices_file", required=True, type=click.Path(), help="Invoices")
@click.option("--output", "output_file", type=click.Path(), help="Write results to this JSON file")
@click.option("--strategy", type=click.Choice(ASSIGNMENT_STRATEGIES), help="Override assignment strategy")
def match(transactions_file: str, invoices_file: str, output_file: str | None, strategy: str | None) -> None:
    """
    Match invoices to transactions from files, without touching storage.

    Example:
      rapprochement reconcile match --transactions releve.csv --invoices factures.csv --output out.json
    """
    try:
        transactions = load_transactions(transactions_file)
        invoices = load_invoices(invoices_file)
        result = InvoiceMatcher(_matching_config(strategy)).match(invoices, transactions)
    except _USER_ERRORS as e:
        raise click.ClickException(_error_message(e)) from e

    output = {
        "metadata": {
            "transactions_file": transactions_file,
            "invoices_file": invoices_file,
            "timestamp": datetime.now().isoformat(timespec="seconds"),
        },
        **result.to_dict(),
    }

    if output_file:
        write_json(Path(output_file), output)
        click.echo(
            f"✅ {len(result.auto_matched)} auto matches, {len(result.suggestions)} suggestions "
            f"for {len(invoices)} invoices"
        )
        click.echo(f"   Results saved to: {output_file}")
    else:
        click.echo(format_json(output))


@reconcile.command()
@click.option("--tenant", required=True, help="Tenant identifier")
@click.option(
    "--statut",
    type=click.Choice([s.value for s in MatchStatus]),
    default=MatchStatus.SUGGESTION.value,
    show_default=True,
    help="Match status to list",
)
def suggestions(tenant: str, statut: str) -> None:
    """
    List match records of a tenant.

    Example:
      rapprochement reconcile suggestions --tenant acme --statut valide
    """
    try:
        records = [r for r in _store().load_match_records(tenant) if r.statut.value == statut]
    except _USER_ERRORS as e:
        raise click.ClickException(_error_message(e)) from e

    if not records:
        click.echo(f"No {statut} matches for {tenant}.")
        return

    for record in sorted(records, key=lambda r: -r.confidence_score):
        user_flag = " (user)" if record.validated_by_user else ""
        click.echo(
            f"{record.id}  {record.confidence_score:>3}  {record.type.value:<10} "
            f"facture {record.facture_id} ↔ transaction {record.transaction_id}  {record.montant}{user_flag}"
        )
    click.echo(f"\n{len(records)} {statut} matches")


@reconcile.command()
@click.option("--tenant", required=True, help="Tenant identifier")
@click.option("--match-id", required=True, help="Match record id")
def confirm(tenant: str, match_id: str) -> None:
    """Confirm a proposed match."""
    try:
        record = confirm_match(_store(), tenant, match_id)
    except _USER_ERRORS as e:
        raise click.ClickException(_error_message(e)) from e
    click.echo(f"✅ Confirmed: facture {record.facture_id} ↔ transaction {record.transaction_id}")


@reconcile.command()
@click.option("--tenant", required=True, help="Tenant identifier")
@click.option("--match-id", required=True, help="Match record id")
def reject(tenant: str, match_id: str) -> None:
    """Reject a proposed match; it will not be proposed again."""
    try:
        record = reject_match(_store(), tenant, match_id)
    except _USER_ERRORS as e:
        raise click.ClickException(_error_message(e)) from e
    click.echo(f"Rejected: facture {record.facture_id} ↔ transaction {record.transaction_id}")


@reconcile.command()
@click.option("--tenant", required=True, help="Tenant identifier")
@click.option("--facture-id", required=True, help="Invoice id")
@click.option("--transaction-id", required=True, help="Transaction id")
def link(tenant: str, facture_id: str, transaction_id: str) -> None:
    """
    Link an invoice and a transaction by hand.

    Example:
      rapprochement reconcile link --tenant acme --facture-id f-12 --transaction-id tx-98
    """
    try:
        record = create_manual_match(_store(), tenant, facture_id, transaction_id, config=get_config().matching)
    except _USER_ERRORS as e:
        raise click.ClickException(_error_message(e)) from e
    click.echo(f"✅ Linked: facture {record.facture_id} ↔ transaction {record.transaction_id} ({record.id})")


@reconcile.command()
@click.option("--tenant", required=True, help="Tenant identifier")
@click.option(
    "--statut",
    type=click.Choice([s.value for s in AnomalyStatus]),
    default=AnomalyStatus.OUVERTE.value,
    show_default=True,
    help="Anomaly status to list",
)
@click.option("--severite", type=click.Choice([s.value for s in AnomalySeverity]), help="Only this severity")
def anomalies(tenant: str, statut: str, severite: str | None) -> None:
    """
    List anomalies of a tenant, most severe first.

    Example:
      rapprochement reconcile anomalies --tenant acme --severite critical
    """
    try:
        records = _store().load_anomaly_records(tenant)
    except _USER_ERRORS as e:
        raise click.ClickException(_error_message(e)) from e

    selected = [
        r
        for r in records
        if r.statut.value == statut and (severite is None or r.severite.value == severite)
    ]
    if not selected:
        click.echo(f"No {statut} anomalies for {tenant}.")
        return

    for record in sorted(selected, key=lambda r: r.severite.rank):
        click.echo(f"{record.id}  [{record.severite.value}] {record.type.value}: {record.anomaly.description}")
    click.echo(f"\n{len(selected)} {statut} anomalies")


def _close_anomaly(tenant: str, anomaly_id: str, status: AnomalyStatus, notes: str | None) -> None:
    try:
        update_anomaly_status(_store(), tenant, anomaly_id, status, notes=notes)
    except _USER_ERRORS as e:
        raise click.ClickException(_error_message(e)) from e
    click.echo(f"Anomaly {anomaly_id} marked {status.value}")


@reconcile.command()
@click.option("--tenant", required=True, help="Tenant identifier")
@click.option("--anomaly-id", required=True, help="Anomaly record id")
@click.option("--notes", help="Resolution notes")
def resolve(tenant: str, anomaly_id: str, notes: str | None) -> None:
    """Mark an anomaly as resolved."""
    _close_anomaly(tenant, anomaly_id, AnomalyStatus.RESOLUE, notes)


@reconcile.command()
@click.option("--tenant", required=True, help="Tenant identifier")
@click.option("--anomaly-id", required=True, help="Anomaly record id")
@click.option("--notes", help="Reason for ignoring")
def ignore(tenant: str, anomaly_id: str, notes: str | None) -> None:
    """Mark an anomaly as ignored."""
    _close_anomaly(tenant, anomaly_id, AnomalyStatus.IGNOREE, notes)


@reconcile.command()
@click.option("--tenant", required=True, help="Tenant identifier")
@click.option("--json", "as_json", is_flag=True, help="Print as JSON")
def stats(tenant: str, as_json: bool) -> None:
    """
    Show reconciliation progress and open anomalies for a tenant.

    Example:
      rapprochement reconcile stats --tenant acme
    """
    store = _store()
    try:
        progress = compute_reconciliation_stats(store.load_transactions(tenant), store.load_match_records(tenant))
        anomaly_counts = summarize_anomalies(store.load_anomaly_records(tenant))
    except _USER_ERRORS as e:
        raise click.ClickException(_error_message(e)) from e

    if as_json:
        click.echo(format_json({"reconciliation": progress, "anomalies": anomaly_counts}))
        return

    click.echo(f"Reconciliation for {tenant}:")
    click.echo(f"  Expense transactions: {progress['total']}")
    click.echo(f"  Reconciled: {progress['reconciled']} ({progress['pct_reconciled']}%)")
    click.echo(f"  Awaiting review: {progress['with_suggestion']}")
    click.echo(f"  Unreconciled: {progress['unreconciled']}")
    click.echo(
        f"  Open anomalies: {anomaly_counts['ouvertes']} "
        f"({anomaly_counts['critical']} critical, {anomaly_counts['warning']} warning, {anomaly_counts['info']} info)"
    )


@reconcile.command()
def tenants() -> None:
    """List tenants with stored reconciliation data."""
    tenant_ids = _store().tenant_ids()
    if not tenant_ids:
        click.echo("No tenants found.")
        return
    for tenant_id in tenant_ids:
        click.echo(tenant_id)
