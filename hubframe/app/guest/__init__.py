"""Code that runs inside the embedded page."""
