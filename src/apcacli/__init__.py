"""apcacli: a command line client for trading stocks on Alpaca.

Example:
    $ export APCA_API_KEY_ID=... APCA_API_SECRET_KEY=...
    $ apcacli account get
    $ apcacli order submit buy AAPL --quantity 10 --limit-price 185
    $ apcacli updates quotes AAPL MSFT
"""

__version__ = "0.1.8"

__all__ = ["__version__"]
