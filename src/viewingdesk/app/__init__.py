"""HTTP surface of the scheduler."""
