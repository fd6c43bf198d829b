"""Domain layer: resource models, states, ports and exceptions."""
