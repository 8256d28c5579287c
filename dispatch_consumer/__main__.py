import sys

from dispatch_consumer.main import main

sys.exit(main())
