"""Health monitor for a Cosmos SDK validator.

Polls a node's REST endpoint on a fixed interval and logs alerts when the node
is syncing, a governance proposal is submitted, the validator misses blocks,
is jailed or unbonded, or gets slashed.
"""

__version__ = "0.1.0"
