"""Non-custodial swaps between on-chain bitcoin and Lightning.

Packages:
- fees: fee schedules and satoshi-exact amount calculation
- client: swap service REST client and dry-run simulation
- channel: push channel for swap status updates
- signing: preimage check and cooperative MuSig2 claim signing
- swap: per-swap state machine and session registry
"""

__version__ = "0.1.0"
