"""
Entry point for ``python -m flatfile_bridge.cli``.

See flatfile_bridge.cli.transfer for the available commands.
"""

import sys

from flatfile_bridge.cli.transfer import main

if __name__ == "__main__":
    sys.exit(main())
