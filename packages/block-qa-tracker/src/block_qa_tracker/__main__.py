import sys

from block_qa_tracker.cli import main

sys.exit(main())
