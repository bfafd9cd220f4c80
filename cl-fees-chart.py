#!/usr/bin/env python3
"""
cl-fees-chart: Routing Fee Charts for Core Lightning

This plugin summarizes the routing fees a node has earned as a
time-bucketed series suitable for charting:
- Hourly buckets for short windows, daily for medium, weekly for long
- Optional "via" filter restricting forwards to one peer's channels
- Total earned and a human-readable title and description

Usage:
    lightning-cli fees-chart 7
    lightning-cli fees-chart -k days=2 via=02abc...

DEPENDENCIES:
- pyln-client: Core Lightning plugin framework

License: MIT
"""

from typing import Any, Dict, Optional

from pyln.client import Plugin

from modules.config import FeesChartConfig
from modules import rpc_commands
from modules.rpc_commands import FeesChartContext

# Initialize the plugin
plugin = Plugin()


# =============================================================================
# GLOBAL INSTANCES (initialized in init)
# =============================================================================

config: Optional[FeesChartConfig] = None


def _get_context() -> FeesChartContext:
    """Bundle the plugin globals for the RPC handlers."""
    return FeesChartContext(
        rpc=plugin.rpc,
        config=config or FeesChartConfig(),
        plugin=plugin,
        log=lambda msg, level='info': plugin.log(f"cl-fees-chart: {msg}", level=level),
    )


# =============================================================================
# PLUGIN OPTIONS
# =============================================================================

plugin.add_option(
    name='fees-chart-forwards-limit',
    default='99999',
    description='Maximum number of forwards read for one chart (older forwards are dropped)'
)

plugin.add_option(
    name='fees-chart-page-size',
    default='10000',
    description='Forwards fetched per listforwards page (0 = one unpaged call, for nodes without paging)'
)

plugin.add_option(
    name='fees-chart-min-days',
    default='4',
    description='Windows shorter than this many days are charted in hourly buckets'
)

plugin.add_option(
    name='fees-chart-max-days',
    default='90',
    description='Windows longer than this many days are charted in weekly buckets'
)


# =============================================================================
# INITIALIZATION
# =============================================================================

@plugin.init()
def init(options: Dict[str, Any], configuration: Dict[str, Any], plugin: Plugin, **kwargs):
    """
    Initialize the cl-fees-chart plugin.

    Parses and validates options; falls back to defaults when they are
    invalid so the chart command stays available.
    """
    global config

    plugin.log("cl-fees-chart: Initializing...")

    try:
        config = FeesChartConfig(
            forwards_limit=int(options.get('fees-chart-forwards-limit', '99999')),
            forwards_page_size=int(options.get('fees-chart-page-size', '10000')),
            min_chart_days=int(options.get('fees-chart-min-days', '4')),
            max_chart_days=int(options.get('fees-chart-max-days', '90')),
        )
        error = config.validate()
    except (TypeError, ValueError) as e:
        error = f"Unparseable option: {e}"

    if error:
        plugin.log(f"cl-fees-chart: Invalid configuration ({error}), using defaults", level='error')
        config = FeesChartConfig()

    plugin.log(
        f"cl-fees-chart: Ready (limit={config.forwards_limit}, "
        f"hourly<{config.min_chart_days}d, weekly>{config.max_chart_days}d)"
    )


# =============================================================================
# RPC COMMANDS
# =============================================================================

@plugin.method("fees-chart")
def fees_chart(plugin: Plugin, days=None, via=None):
    """
    Get routing fees earned over the last `days` days as a chart series.

    Args:
        days: Lookback window in days
        via: Optional peer pubkey; only forwards touching its channels count

    Returns:
        Dict with title, description and fees (oldest bucket first).
    """
    return rpc_commands.fees_chart(_get_context(), days=days, via=via)


@plugin.method("fees-chart-config")
def fees_chart_config(plugin: Plugin, key=None, value=None):
    """
    Show the chart configuration, or change one value.

    Args:
        key: Optional config field to change (forwards_limit, forwards_page_size,
             min_chart_days, max_chart_days)
        value: New value for `key`

    Returns:
        Dict with the active configuration, or the change result.
    """
    ctx = _get_context()
    if key is None:
        return rpc_commands.get_config(ctx)
    if value is None:
        return {"error": "missing_value", "message": f"No value given for {key}"}
    return rpc_commands.set_config(ctx, key, value)


if __name__ == "__main__":
    plugin.run()
