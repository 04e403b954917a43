"""booksite - build static HTML books from a Quarto-style manifest."""
