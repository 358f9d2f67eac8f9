"""SnapWatch command line interface."""
