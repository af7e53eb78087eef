"""Module __init__: encryption capability acquisition and use."""
#
# WHAT'S IN THIS MODULE:
# - runtime.py: host runtime (globals registry, remote script loading)
# - bootstrap.py: two-stage capability factory discovery and instance creation
# - encrypt.py: encrypted applause increments
# - decrypt.py: handle decryption with user/public fallback
#
