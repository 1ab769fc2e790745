"""TCP/HTTP ping package.

Probes one endpoint at a fixed interval, printing the outcome and latency
of every attempt and a summary when the run ends.

Key modules:
    models      -- Protocol, Target, Option, Stats, MetricsSnapshot
    base        -- BaseProbe abstract class (one probe attempt)
    probes      -- TCPProbe, HTTPProbe and their factories
    registry    -- protocol -> probe factory registry
    resolver    -- system and DNS-server name resolution
    errors      -- normalization of network errors into categories
    metrics     -- PingMetrics running statistics
    pinger      -- Pinger scheduling loop
    parsing     -- target address and duration parsing/formatting
"""

__version__ = "0.1.2"
