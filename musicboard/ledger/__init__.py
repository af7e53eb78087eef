"""Module __init__: everything that talks to or describes the shared ledger."""
#
# WHAT'S IN THIS MODULE:
# - models.py: Note, TransactionReceipt, EncryptedIncrement
# - contract.py: contract binding protocol supplied by the host
# - addresses.py: known deployments per chain
# - gateway.py: reads, writes and post-write refresh
# - inflight.py: duplicate-applause gate
#
