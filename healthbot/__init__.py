"""
HealthBot: platform self-monitoring and self-healing

HealthBot is a periodically triggered engine that:
- Probes the platform's pages, APIs, storage tables and security headers
- Records every failure as an issue with a severity on a health-check run
- Classifies open support tickets against known failure patterns
- Attempts automated remediation before escalating to a human

Usage:
    from healthbot import HealthCheckOrchestrator, RunLedger

    # Or use CLI:
    $ healthbot check
"""

__version__ = "0.3.0"

# Core functionality
from .config import get_settings
from .logging import get_logger

from .db.ledger import RunLedger
from .orchestrator import HealthCheckOrchestrator, RemediationSweep

__all__ = [
    "HealthCheckOrchestrator",
    "RemediationSweep",
    "RunLedger",
    "get_settings",
    "get_logger",
    "__version__",
]
