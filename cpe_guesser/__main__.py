import sys

from cpe_guesser.cli import main

sys.exit(main())
