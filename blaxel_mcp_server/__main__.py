import sys

from blaxel_mcp_server.server import main

sys.exit(main())
