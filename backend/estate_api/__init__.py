"""Real estate listings, services catalogue and contact inbox API."""
