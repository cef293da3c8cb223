"""HTTP layer of the assessment engine."""
