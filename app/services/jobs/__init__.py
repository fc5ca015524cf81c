"""Processing job lifecycle: update parsing, locking, reconciliation and queries."""
