import sys

from autoupdate_hook.cli import main

sys.exit(main())
