"""Domain layer: pure model, ports and synchronization services."""
