import sys

from gmail_attachments.cli import main

sys.exit(main())
