"""SessionFlow: authentication session flow for the app shell."""

__version__ = "0.1.0"
