import sys

from teampulse.cli import main

sys.exit(main())
