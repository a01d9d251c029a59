"""
DDRide - verified designated driver service
"""
__version__ = "1.0.0"
