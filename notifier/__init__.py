"""Transactional notification dispatcher for the Favored Online platform."""
