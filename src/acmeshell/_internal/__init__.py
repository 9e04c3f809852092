"""acmeshell internal code."""
