"""Root conftest - make the src-layout package importable without pip install."""

import sys
from pathlib import Path

# Put src/ first on sys.path so `import diffgate` resolves to this checkout
# even when another copy is installed.
_src = str(Path(__file__).parent / "src")
if _src not in sys.path:
    sys.path.insert(0, _src)
