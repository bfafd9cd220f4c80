"""
RPC Command Handlers for cl-fees-chart

This module contains the implementation logic for fees-chart* RPC commands.
The actual @plugin.method() decorators remain in cl-fees-chart.py, which
creates thin wrappers that call these handler functions.

Design Pattern:
    - Each handler receives a FeesChartContext with all dependencies
    - Handlers are plain functions that can be easily tested
    - Input errors are returned as {"error": ...} dicts; lightningd RPC
      failures are logged and re-raised
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from pyln.client import RpcError

from .config import CONFIG_FIELD_TYPES
from .fees_chart import FeesChartBuilder, InvalidArgument
from .node_api import NodeNotFoundError


@dataclass
class FeesChartContext:
    """
    Context object holding all dependencies for RPC command handlers.
    """
    rpc: Any          # ThreadSafe RPC proxy or LightningRpc
    config: Any       # FeesChartConfig
    plugin: Any = None
    log: Callable[[str, str], None] = None  # Logger function: (msg, level) -> None


def _log(ctx: FeesChartContext, msg: str, level: str = 'info') -> None:
    if ctx.log:
        ctx.log(msg, level)


# =============================================================================
# CHART COMMANDS
# =============================================================================

def fees_chart(ctx: FeesChartContext, days: Any = None, via: Optional[str] = None) -> Dict[str, Any]:
    """
    Get the routing fees chart for the last `days` days.

    Args:
        ctx: FeesChartContext
        days: Lookback window in days (required)
        via: Optional peer pubkey to restrict forwards to its channels

    Returns:
        Dict with title, description, fees (oldest first), granularity,
        segments, total_earned, forward_count and truncated.
    """
    builder = FeesChartBuilder(ctx.rpc, plugin=ctx.plugin, config=ctx.config)

    try:
        chart = builder.build(days, via=via)
    except InvalidArgument as e:
        return {"error": e.code, "message": e.message}
    except NodeNotFoundError as e:
        return {"error": "node_not_found", "message": str(e), "via": via}
    except RpcError as e:
        _log(ctx, f"fees-chart RPC failure: {e}", 'warn')
        raise

    return chart.to_dict()


# =============================================================================
# CONFIG COMMANDS
# =============================================================================

def get_config(ctx: FeesChartContext) -> Dict[str, Any]:
    """Return the active configuration."""
    return ctx.config.snapshot().to_dict()


def _convert(value: Any, expected_type: type) -> Any:
    """Convert a CLI value, refusing to truncate fractional ints."""
    if expected_type is not int:
        return expected_type(value)
    if isinstance(value, bool):
        raise ValueError(f"Expected a whole number, got {value!r}")
    number = float(value)
    if not number.is_integer():
        raise ValueError(f"Expected a whole number, got {value!r}")
    return int(number)


def set_config(ctx: FeesChartContext, key: str, value: Any) -> Dict[str, Any]:
    """
    Change one configuration value at runtime.

    Args:
        ctx: FeesChartContext
        key: Config field name (e.g. 'forwards_limit')
        value: New value; strings from the CLI are converted

    Returns:
        Dict with the old and new values, or an error.
    """
    expected_type = CONFIG_FIELD_TYPES.get(key)
    if expected_type is None:
        return {
            "error": "unknown_key",
            "message": f"Unknown config key: {key}",
            "valid_keys": sorted(CONFIG_FIELD_TYPES),
        }

    try:
        converted = _convert(value, expected_type)
    except (TypeError, ValueError):
        return {
            "error": "invalid_value",
            "message": f"Config {key} expects {expected_type.__name__}, got {value!r}",
        }

    old_value = getattr(ctx.config, key)
    error = ctx.config.update(**{key: converted})
    if error:
        return {"error": "invalid_value", "message": error}

    _log(ctx, f"Config {key} changed: {old_value} -> {converted}")
    return {
        "key": key,
        "old_value": old_value,
        "new_value": converted,
        "version": ctx.config.snapshot().version,
    }
