"""Market protocol constants.

Centralizes the fixed parameters of the order book and the price oracle.
"""

# Oracle prices are expressed as integers scaled by 1e18
PRICE_SCALE = 10**18

# Ring buffer slots kept per oracle pair
ORACLE_CAPACITY = 120

# Minimum time units between two oracle samples of the same pair
ORACLE_MIN_INTERVAL = 30

# Blocks a tombstoned rank node must age before a keeper may purge it
TOMBSTONE_GRACE_BLOCKS = 10

# Fee rates are expressed in basis points of the buy-side amount
FEE_BPS_BASE = 10_000

# AWAP blend weight range: 0 = pure VWAP, 100 = pure TWAP
AWAP_WEIGHT_BASE = 100

# Null identifier for offers and rank pointers
NULL_ID = 0
