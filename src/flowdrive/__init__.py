"""flowdrive: Google Drive credentials for flow-based automation runtimes.

Obtains, encrypts, persists and refreshes per-node OAuth credentials and
hands authorized clients to the Drive file operations.
"""

__version__ = "0.1.0"
