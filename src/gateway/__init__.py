"""Agent Gateway: tier-gated routing of chat messages to specialized agents."""
