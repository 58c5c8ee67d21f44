"""TaalMeet discovery client core: nearby partners, location reporting and views."""
