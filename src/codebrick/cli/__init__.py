"""brick CLI (argparse + rich)."""
