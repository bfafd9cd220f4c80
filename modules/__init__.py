"""
Modules package for cl-fees-chart

This package contains the core modules for the fee chart plugin:
- config: Configuration dataclass and snapshot pattern
- calendar_utils: Local calendar fields, week numbers and relative phrases
- node_api: Forward and peer channel lookups over lightningd RPC
- fees_chart: Granularity selection, bucketing and chart composition
- rpc_commands: Handlers behind the fees-chart* RPC methods
"""

__version__ = "0.1.0-dev"
