import sys

from forager_simulation.cli import main

if __name__ == "__main__":
    # Five agents, three runs, Q-learning with empathetic sharing
    sys.exit(main())
