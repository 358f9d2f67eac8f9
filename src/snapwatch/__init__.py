"""SnapWatch - live, filtered snapshots of a directory's text files."""
