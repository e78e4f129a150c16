import sys
from pathlib import Path

# Puts 'src' on sys.path before test collection so athena_stream imports
# without an editable install.

# Fail fast if Python version is unsupported (asyncio.to_thread requires 3.9+)
if sys.version_info < (3, 9):
    print(
        f"ERROR: This project requires Python 3.9+ (found {sys.version.split()[0]}).",
        file=sys.stderr,
    )
    sys.exit(1)


ROOT_DIR = Path(__file__).parent.absolute()
src_dir = ROOT_DIR / "src"

if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))
