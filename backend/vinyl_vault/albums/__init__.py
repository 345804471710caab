"""Album records and their metadata."""
