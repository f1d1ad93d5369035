import sys

from xnotify.cli import main

sys.exit(main())
