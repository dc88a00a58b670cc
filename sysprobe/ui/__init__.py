"""Front ends — command line and web API."""
