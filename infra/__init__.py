"""CDK stacks for the BAPS AI frontend."""
