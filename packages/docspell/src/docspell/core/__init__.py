"""Runtime plumbing shared by every docspell command."""
