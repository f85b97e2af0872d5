import sys

from taskpicker.cli.main import main

sys.exit(main())
