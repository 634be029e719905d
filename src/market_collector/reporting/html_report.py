from __future__ import annotations

import html
from pathlib import Path

from market_collector.reporting.summary import CollectionSummary

HTML_TEMPLATE = """
<html>
<head>
<title>Data Collection Report</title>
<style>
body {{ font-family: Arial; margin: 40px; }}
h1 {{ color: #333; }}
table {{ border-collapse: collapse; width: 70%; margin-bottom: 40px; }}
td, th {{ border: 1px solid #ccc; padding: 8px; }}
</style>
</head>
<body>

<h1>Data Collection Report: {symbol}</h1>
<p>Generated at {generated_at}</p>

<h2>Historical Data</h2>
<table>
<tr><th>Series</th><th>Records</th></tr>
<tr><td>Spot Prices</td><td>{spot_count}</td></tr>
<tr><td>VIX</td><td>{vix_count}</td></tr>
<tr><td>Option Chain Days</td><td>{chain_days}</td></tr>
<tr><td>FII/DII</td><td>{flow_count}</td></tr>
</table>

<h2>Live Data</h2>
<table>
<tr><th>Metric</th><th>Value</th></tr>
<tr><td>Current Spot</td><td>{spot}</td></tr>
<tr><td>Current VIX</td><td>{vix}</td></tr>
<tr><td>Options Available</td><td>{options}</td></tr>
<tr><td>Last Updated</td><td>{last_updated}</td></tr>
</table>

<h2>Data Quality</h2>
{quality_table}

<h2>Errors</h2>
{errors}

</body>
</html>
"""


def _quality_table(summary: CollectionSummary) -> str:
    rows = "".join(
        f"<tr><td>{html.escape(name)}</td><td>{'yes' if flag else 'no'}</td></tr>"
        for name, flag in summary.data_quality.model_dump().items()
    )
    return f"<table><tr><th>Check</th><th>Passed</th></tr>{rows}</table>"


def _errors_list(summary: CollectionSummary) -> str:
    errors = summary.historical.errors + summary.live.errors
    if not errors:
        return "<p>None</p>"
    items = "".join(f"<li>{html.escape(e)}</li>" for e in errors)
    return f"<ul>{items}</ul>"


def generate_html_report(summary: CollectionSummary, path: str | Path) -> Path:
    page = HTML_TEMPLATE.format(
        symbol=html.escape(summary.symbol),
        generated_at=summary.generated_at.isoformat(),
        spot_count=summary.historical.spot_prices_count,
        vix_count=summary.historical.vix_records_count,
        chain_days=summary.historical.option_chain_days,
        flow_count=summary.historical.flow_records_count,
        spot=summary.live.current_spot if summary.live.current_spot is not None else "N/A",
        vix=summary.live.current_vix if summary.live.current_vix is not None else "N/A",
        options=summary.live.options_available,
        last_updated=summary.live.last_updated.isoformat() if summary.live.last_updated else "N/A",
        quality_table=_quality_table(summary),
        errors=_errors_list(summary),
    )

    path = Path(path)
    path.write_text(page)
    return path
