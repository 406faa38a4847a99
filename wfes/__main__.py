import sys

from wfes.cli import main

sys.exit(main())
