import sys
from pathlib import Path

# Project root and this directory, for `core`, `modules` and `mock_hands`
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))
