"""Wallace Museum catalog application package."""
