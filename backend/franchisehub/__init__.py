"""FranchiseHub backend package."""
