"""Module __init__: foundational pieces of the MusicBoard client."""
#
# WHAT'S IN THIS MODULE:
# - config.py: Client configuration (ledger, capability source, RPC, logging)
# - session.py: Wallet session management (account, chain, signing)
#
