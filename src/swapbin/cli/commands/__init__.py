"""Command groups for the SwapBin CLI."""
