import sys

from structurizr_dsl_mcp import main

sys.exit(main())
