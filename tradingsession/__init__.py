"""
Trading session core.

Gasless trading through a relayer-sponsored proxy wallet: derive and
deploy the proxy, bind exchange credentials to the owner key, batch the
token approvals, then price and submit orders against the live book.
"""

__version__ = "0.1.0"
