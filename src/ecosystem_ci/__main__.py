import sys

from ecosystem_ci.cli import main

sys.exit(main())
