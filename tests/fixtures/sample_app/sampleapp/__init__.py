"""Sample application used by the generator tests."""
