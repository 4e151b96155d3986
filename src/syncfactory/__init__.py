"""
SyncFactory -- keep a game save in step with an SFTP store.

Pulls the newest snapshot before you play, publishes a new one after
you quit, and backs up your local save instead of ever clobbering a
newer remote copy.
"""

import os

__version__ = "0.1.0"
__author__ = "SyncFactory contributors"

SYNCFACTORY_HOME = os.environ.get("SYNCFACTORY_HOME", "~/.syncfactory")
