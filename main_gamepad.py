import sys

from input.gamepad_publisher import main

if __name__ == "__main__":
    sys.exit(main())
