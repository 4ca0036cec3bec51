import sys

from atlas_etl.cli import main


if __name__ == "__main__":
    sys.exit(main())
