"""Default filter sets applied when the user has not saved their own.

These seed FilterConfig.defaults() and the preferences file. They are
defaults only: a scan request carries its own explicit filter configuration.
"""

from __future__ import annotations

DEFAULT_ALLOWED_EXTENSIONS: frozenset[str] = frozenset(
    (
        ".js",
        ".jsx",
        ".ts",
        ".tsx",
        ".py",
        ".java",
        ".rb",
        ".go",
        ".cs",
        ".cpp",
        ".html",
        ".css",
        ".swift",
    )
)

DEFAULT_IGNORED_DIRS: frozenset[str] = frozenset(
    (
        # VCS internals
        ".git",
        # Dependencies and caches
        "node_modules",
        "__pycache__",
        # Build output
        "dist",
    )
)

DEFAULT_IGNORED_FILES: frozenset[str] = frozenset(("package-lock.json",))

DEFAULT_MAX_FILE_SIZE_BYTES = 5 * 1024 * 1024
"""Files larger than this are skipped (5 MiB)."""
