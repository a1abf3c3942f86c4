"""Chain adapters used by the checkout engine."""
