"""Allow running as: python -m capability_map tasks.json"""

import sys

from capability_map.main import cli

if __name__ == "__main__":
    sys.exit(cli())
