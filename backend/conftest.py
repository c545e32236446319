import sys
from pathlib import Path


# Tests import the flat modules (`config`, `models`, `services.*`) straight from backend/src.
SRC = Path(__file__).resolve().parent / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
