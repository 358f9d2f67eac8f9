"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages.
"""

import sys
from pathlib import Path

import pytest

# Insert local src directory at the beginning of sys.path
# This ensures that the local snapwatch package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of snapwatch modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("snapwatch"):
        del sys.modules[module_name]


@pytest.fixture
def sample_tree(tmp_path: Path) -> Path:
    """A small project tree with files that pass and fail the default filter.

    root/
      a.js            included
      b.txt           wrong extension
      src/c.ts        included
      node_modules/d.js   ignored directory
      package-lock.json   ignored file
    """
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "node_modules").mkdir()
    (root / "a.js").write_text("console.log('a');\n")
    (root / "b.txt").write_text("notes\n")
    (root / "src" / "c.ts").write_text("export const c = 1;\n")
    (root / "node_modules" / "d.js").write_text("module.exports = {};\n")
    (root / "package-lock.json").write_text("{}\n")
    return root
