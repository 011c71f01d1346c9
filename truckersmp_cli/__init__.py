"""
truckersmp-cli: keeps the TruckersMP mod content directory in sync with the
remote file manifest.
"""

__version__ = "0.4.0"
