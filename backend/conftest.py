import sys
from pathlib import Path


# Tests import the flat backend modules directly (`config`, `models`, `services.*`).
SRC = Path(__file__).resolve().parent / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
