"""gorerun - rebuild, test and relaunch a Go program whenever its sources change."""

__version__ = "0.1.0"
