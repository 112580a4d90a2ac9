import sys

from article_capture.cli import main

if __name__ == "__main__":
    sys.exit(main())
