"""Core building blocks of the resilient call layer."""
