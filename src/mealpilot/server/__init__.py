"""FastAPI proxy between Mealpilot clients and the catering platform."""
