"""Domain layer — pure value types with no framework dependencies."""
