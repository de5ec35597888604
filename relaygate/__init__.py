"""
relaygate - single-use signed links for cloud-controlled door relays.
"""

__version__ = "0.1.0"
__logo__ = "🚪"
