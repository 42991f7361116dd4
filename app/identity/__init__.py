"""Identity resolution: consolidate contact observations into clusters."""
