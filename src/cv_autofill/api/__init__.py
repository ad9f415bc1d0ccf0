"""HTTP API for the CV Auto-Fill System."""
