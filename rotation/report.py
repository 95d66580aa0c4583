#!/usr/bin/env python3
"""
rotation/report.py - Rich table of what each configured provider does and its risks.

Usage:
    python -m rotation.report providers.json
    python -m rotation.report providers.json --min-score 50

providers.json holds a list of provider records, for example:
    [
      {"type": "cosmosdb-key", "resourceGroup": "rg", "resourceName": "orders-db",
       "keyKind": "Primary", "skipScramblingOtherKey": true},
      {"type": "app-setting", "resourceGroup": "rg", "resourceName": "orders-api",
       "settingName": "CosmosKey"}
    ]

Building the report performs no network calls.
"""
import argparse
import sys
from typing import Any, Iterable

from rich.console import Console
from rich.table import Table
from rich.text import Text

from rotation.backends.azure_backend import AzureAppConfigClient, AzureKeyClient, get_credential
from rotation.config import load_provider_records
from rotation.consumers import ConsumerProvider
from rotation.errors import RotationError
from rotation.registry import CONSUMER, SECRET, ProviderRegistry, default_registry

RISK_HIGH = 70
RISK_MEDIUM = 40


def risk_indicator(score: int | None) -> Text:
    """Return a colored label for a risk score (None = no risk found)."""
    if score is None:
        return Text("OK", style="green")
    if score >= RISK_HIGH:
        return Text(f"HIGH ({score})", style="bold red")
    if score >= RISK_MEDIUM:
        return Text(f"MEDIUM ({score})", style="bold yellow")
    return Text(f"LOW ({score})", style="yellow")


def build_table(providers: Iterable[tuple[str, Any]], min_score: int = 0) -> Table:
    """Build a Rich table from (type id, provider) pairs."""
    table = Table(
        title="Credential Rotation Review",
        show_header=True,
        header_style="bold cyan",
        border_style="blue",
        expand=True,
    )
    table.add_column("Type", style="dim", min_width=18)
    table.add_column("Description", ratio=3)
    table.add_column("Risk", justify="center", min_width=12)
    table.add_column("Finding", ratio=2)

    total = 0
    for type_id, provider in providers:
        total += 1
        risks = [] if isinstance(provider, ConsumerProvider) else provider.get_risks()
        risks = [r for r in risks if r.score >= min_score]
        if not risks:
            table.add_row(type_id, provider.get_description(), risk_indicator(None), "")
            continue
        for i, item in enumerate(sorted(risks, key=lambda r: r.score, reverse=True)):
            table.add_row(
                type_id if i == 0 else "",
                provider.get_description() if i == 0 else "",
                risk_indicator(item.score),
                f"{item.risk}\n[dim]{item.recommendation}[/dim]",
            )

    table.caption = f"[dim]{total} provider(s) | risks scored 0-100, higher is riskier[/dim]"
    return table


def build_providers(
    records: list[dict[str, Any]], registry: ProviderRegistry | None = None
) -> list[tuple[str, Any]]:
    """Instantiate providers from records with Azure clients (built lazily, on first call)."""
    registry = registry or default_registry()
    credential = get_credential()
    clients = {
        SECRET: AzureKeyClient(credential=credential),
        CONSUMER: AzureAppConfigClient(credential=credential),
    }
    return [
        (record["type"], registry.create(record["type"], record, clients[registry.role(record["type"])]))
        for record in records
    ]


def main() -> None:
    parser = argparse.ArgumentParser(description="Review configured rotation providers and their risks")
    parser.add_argument("config", help="JSON file of provider records")
    parser.add_argument("--min-score", type=int, default=0, help="Only show risks scoring at least this")
    args = parser.parse_args()

    console = Console()
    try:
        providers = build_providers(load_provider_records(args.config))
    except (OSError, TypeError, ValueError, RotationError) as e:
        console.print(f"[red]Could not load providers: {e}[/red]")
        sys.exit(1)
    console.print(build_table(providers, min_score=args.min_score))


if __name__ == "__main__":
    main()
