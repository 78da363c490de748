"""
Backend Vetting: automated token vetting engine.

Fetches market data for a token, runs an independent battery of checks
against it in parallel, folds the results into a single verdict and stores
that verdict until it goes stale or a refresh is forced. Modular layout:
market_data, checks, vetting (runner, aggregator, service), database,
API server and a periodic refresh worker.
"""

__version__ = "0.1.0"
