"""
nutview: watch UPS devices served by a Network UPS Tools (upsd) daemon.
"""

__version__ = "0.1.0"
